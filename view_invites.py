#!/usr/bin/env python3
"""
View the invite snapshot for the Merchant Onboarding Server.
"""

import asyncio
import sys

from onboarding_server.config import settings
from onboarding_server.store import JsonFileInviteStore


async def view_invites(path: str):
    """Print every invite in the snapshot file."""

    store = JsonFileInviteStore(path)
    await store.load()
    invites = await store.list()

    print("=" * 80)
    print(" MERCHANT ONBOARDING - INVITES")
    print("=" * 80)
    print(f"\n📄 Snapshot: {path}")

    used = [record for record in invites.values() if record.used]
    print(f"\nTotal invites: {len(invites)} ({len(used)} used, {len(invites) - len(used)} open)")

    if not invites:
        print("\n⚠️  No invites found")
        return

    for record in sorted(invites.values(), key=lambda r: r.created_at):
        print(f"\n🎟️  Token: {record.token}")
        print(f"   Label: {record.label or '-'}")
        print(f"   Created: {record.created_at.isoformat()}")
        if record.used:
            print(f"   Used by: {record.used_by}")
            print(f"   Used at: {record.used_at.isoformat()}")
        else:
            print("   Status: open")

    print("\n" + "=" * 80)


if __name__ == "__main__":
    asyncio.run(view_invites(sys.argv[1] if len(sys.argv) > 1 else settings.invites_file))
