"""Verification token generation."""

import secrets

from treebio_domains.config import settings

# 16 random bytes = 128 bits of entropy
TOKEN_ENTROPY_BYTES = 16


def generate_verification_token(prefix: str | None = None) -> str:
    """
    Generate an unguessable ownership challenge.

    The namespace prefix makes the value recognizable in DNS zones and
    verification files, e.g. "treebio-verify-3f9a...".

    Args:
        prefix: Namespace prefix (defaults to VERIFICATION_TOKEN_PREFIX)

    Returns:
        Token string
    """
    prefix = prefix or settings.VERIFICATION_TOKEN_PREFIX
    return f"{prefix}-{secrets.token_hex(TOKEN_ENTROPY_BYTES)}"
