"""Token handling for host and per-participant player access."""

from __future__ import annotations

import hashlib
import hmac
import secrets


TOKEN_BYTES = 24


def generate_token() -> str:
    """Generate a URL-safe token for encounter access."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def hash_token(token: str, server_salt: str) -> str:
    """Create deterministic token hash via sha256(token + server_salt)."""
    payload = f"{token}{server_salt}".encode("utf-8")
    return hashlib.sha256(payload).hexdigest()


def verify_token(raw_token: str, expected_hash: str, server_salt: str) -> bool:
    return hmac.compare_digest(hash_token(raw_token, server_salt), expected_hash)


def issue_tokens(participant_ids: list[str], server_salt: str) -> tuple[dict[str, str], dict[str, str]]:
    """Mint one host token and one token per participant.

    Returns ``(raw_tokens, hashes)`` where both map ``"HOST"`` or a
    participant id to the raw token and its stored hash respectively.
    """
    raw_tokens = {"HOST": generate_token()}
    raw_tokens.update({participant_id: generate_token() for participant_id in participant_ids})
    hashes = {key: hash_token(token, server_salt) for key, token in raw_tokens.items()}
    return raw_tokens, hashes
