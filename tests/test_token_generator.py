"""Tests for verification token generation."""

import re

from treebio_domains.utils.token_generator import generate_verification_token


class TestGenerateVerificationToken:
    def test_default_prefix(self):
        token = generate_verification_token()
        assert token.startswith("treebio-verify-")

    def test_carries_128_bits(self):
        token = generate_verification_token()
        suffix = token.rsplit("-", 1)[1]
        assert re.fullmatch(r"[0-9a-f]{32}", suffix)

    def test_custom_prefix(self):
        assert generate_verification_token("acme").startswith("acme-")

    def test_tokens_are_unique(self):
        tokens = {generate_verification_token() for _ in range(500)}
        assert len(tokens) == 500
