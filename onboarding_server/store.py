"""
Invite storage for the Merchant Onboarding Server.

Keeps invites in memory and mirrors every mutation to a JSON snapshot file.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Set
import asyncio
import hashlib
import json
import os
import secrets
import tempfile

from fastapi import Request
from pydantic import ValidationError
import structlog

from .errors import InvalidInvite, InviteAlreadyUsed, PersistenceFailure
from .models import InviteRecord

logger = structlog.get_logger(__name__)

TOKEN_FINGERPRINT_LENGTH = 12


def token_fingerprint(token: Optional[str]) -> Optional[str]:
    """Short hash of an invite token for log lines; tokens are bearer credentials."""
    if token is None:
        return None
    return hashlib.sha256(token.encode()).hexdigest()[:TOKEN_FINGERPRINT_LENGTH]


class InviteStore(ABC):
    """
    Interface for invite storage backends.

    Implementations must serialize reserve/mark_used per token so that only
    one registration can claim an unused invite.
    """

    @abstractmethod
    async def load(self) -> None:
        """Rehydrate state from the backing storage."""

    @abstractmethod
    async def create(self, label: Optional[str] = None) -> InviteRecord:
        """Create and persist a new unused invite."""

    @abstractmethod
    async def get(self, token: str) -> Optional[InviteRecord]:
        """Return the invite for a token, or None."""

    @abstractmethod
    async def list(self) -> Dict[str, InviteRecord]:
        """Return all invites keyed by token."""

    @abstractmethod
    async def reserve(self, token: str) -> InviteRecord:
        """Claim an unused invite for an in-flight registration."""

    @abstractmethod
    async def release(self, token: str) -> None:
        """Drop the in-flight claim on an invite, leaving it unused."""

    @abstractmethod
    async def mark_used(self, token: str, used_by: str) -> InviteRecord:
        """Consume an invite."""


class JsonFileInviteStore(InviteStore):
    """
    Invite store backed by a single JSON snapshot file.

    The whole store is rewritten atomically after each mutation. A failed
    write is logged and the in-memory state stays authoritative until the
    next restart.
    """

    def __init__(self, path: str):
        """
        Initialize the store.

        Args:
            path: Snapshot file location
        """
        self.path = Path(path)
        self._invites: Dict[str, InviteRecord] = {}
        self._reserved: Set[str] = set()
        self._lock = asyncio.Lock()

    async def load(self) -> None:
        """
        Load invites from the snapshot file.

        A missing file means an empty store. A corrupt file is an error:
        starting empty would forget which invites were consumed.
        """
        if not self.path.exists():
            logger.info("invite_snapshot_missing", path=str(self.path))
            self._invites = {}
            return

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            invites = {
                token: InviteRecord.model_validate(record)
                for token, record in raw.items()
            }
        except (OSError, ValueError, AttributeError, ValidationError) as e:
            logger.error(
                "invite_snapshot_load_failed",
                path=str(self.path),
                error=str(e)
            )
            raise

        self._invites = invites
        logger.info(
            "invite_snapshot_loaded",
            path=str(self.path),
            count=len(invites)
        )

    def _write_snapshot(self) -> None:
        """
        Write all invites to the snapshot file atomically.

        Raises:
            PersistenceFailure if the file cannot be written
        """
        data = json.dumps(
            {
                token: record.model_dump(mode="json", by_alias=True)
                for token, record in self._invites.items()
            },
            indent=2
        )

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=str(self.path.parent),
                prefix=self.path.name + ".",
                suffix=".tmp",
                delete=False
            ) as tmp:
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
                tmp_name = tmp.name
            os.replace(tmp_name, str(self.path))
        except OSError as e:
            raise PersistenceFailure(f"Failed to write invite snapshot: {e}") from e

    def _persist(self) -> None:
        try:
            self._write_snapshot()
        except PersistenceFailure as e:
            logger.warning(
                "invite_snapshot_write_failed",
                path=str(self.path),
                error=e.message
            )

    async def create(self, label: Optional[str] = None) -> InviteRecord:
        async with self._lock:
            token = secrets.token_hex(16)
            while token in self._invites:
                token = secrets.token_hex(16)

            record = InviteRecord(token=token, label=label, created_at=datetime.utcnow())
            self._invites[token] = record
            await asyncio.to_thread(self._persist)

        logger.info("invite_created", token=token_fingerprint(token), label=label)
        return record.model_copy()

    async def get(self, token: str) -> Optional[InviteRecord]:
        record = self._invites.get(token)
        return record.model_copy() if record else None

    async def list(self) -> Dict[str, InviteRecord]:
        return {token: record.model_copy() for token, record in self._invites.items()}

    async def reserve(self, token: str) -> InviteRecord:
        """
        Claim an unused invite for an in-flight registration.

        Raises:
            InvalidInvite if the token is unknown
            InviteAlreadyUsed if it is consumed or already claimed
        """
        async with self._lock:
            record = self._invites.get(token)
            if record is None:
                raise InvalidInvite()
            if record.used or token in self._reserved:
                logger.info("invite_reservation_rejected", token=token_fingerprint(token), used=record.used)
                raise InviteAlreadyUsed()
            self._reserved.add(token)

        logger.debug("invite_reserved", token=token_fingerprint(token))
        return record.model_copy()

    async def release(self, token: str) -> None:
        async with self._lock:
            self._reserved.discard(token)
        logger.debug("invite_released", token=token_fingerprint(token))

    async def mark_used(self, token: str, used_by: str) -> InviteRecord:
        """
        Consume an invite.

        Args:
            token: Invite token
            used_by: Name of the store that registered with the invite

        Returns:
            The consumed invite

        Raises:
            InvalidInvite if the token is unknown
            InviteAlreadyUsed if it was already consumed
        """
        async with self._lock:
            record = self._invites.get(token)
            if record is None:
                raise InvalidInvite()
            if record.used:
                raise InviteAlreadyUsed()

            used_at = max(datetime.utcnow(), record.created_at)
            record = record.model_copy(update={"used": True, "used_by": used_by, "used_at": used_at})
            self._invites[token] = record
            self._reserved.discard(token)
            await asyncio.to_thread(self._persist)

        logger.info("invite_consumed", token=token_fingerprint(token), used_by=used_by)
        return record.model_copy()


def get_store(request: Request) -> InviteStore:
    """
    Get the invite store attached to the application.

    Usage in route:
        @router.get("/endpoint")
        async def endpoint(store: InviteStore = Depends(get_store)):
            ...
    """
    store = getattr(request.app.state, "invite_store", None)
    if store is None:
        raise RuntimeError("Invite store not loaded. Start the app through its lifespan first")
    return store


__all__ = ["InviteStore", "JsonFileInviteStore", "get_store", "token_fingerprint"]
