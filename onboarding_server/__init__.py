"""
Merchant Onboarding Server

Invite-gated self-registration for Nostr market merchants: issues single-use
invites, decodes merchant npub identities and registers merchants with the
downstream order router.
"""

__version__ = "1.0.0"
