"""Tests for domain normalization and validation utilities."""

from treebio_domains.utils.domain_validator import normalize_domain, validate_domain


class TestNormalizeDomain:
    def test_lowercases(self):
        assert normalize_domain("Example.COM") == "example.com"

    def test_strips_whitespace(self):
        assert normalize_domain("  blog.example.com \n") == "blog.example.com"

    def test_drops_trailing_root_dot(self):
        assert normalize_domain("example.com.") == "example.com"

    def test_empty(self):
        assert normalize_domain("") == ""


class TestValidateDomain:
    def test_valid_apex(self):
        is_valid, error = validate_domain("example.com")
        assert is_valid is True
        assert error is None

    def test_valid_subdomain(self):
        is_valid, _ = validate_domain("blog.example.com")
        assert is_valid is True

    def test_valid_hyphenated_label(self):
        is_valid, _ = validate_domain("my-site.example.co.uk")
        assert is_valid is True

    def test_valid_punycode_tld(self):
        is_valid, _ = validate_domain("example.xn--p1ai")
        assert is_valid is True

    def test_empty(self):
        is_valid, error = validate_domain("")
        assert is_valid is False
        assert "required" in error.lower()

    def test_single_label(self):
        is_valid, error = validate_domain("localhost")
        assert is_valid is False
        assert "dot" in error.lower()

    def test_one_letter_tld(self):
        is_valid, error = validate_domain("example.c")
        assert is_valid is False
        assert "top-level" in error.lower()

    def test_numeric_tld(self):
        is_valid, _ = validate_domain("192.168.1.1")
        assert is_valid is False

    def test_leading_hyphen(self):
        is_valid, _ = validate_domain("-bad.example.com")
        assert is_valid is False

    def test_trailing_hyphen(self):
        is_valid, _ = validate_domain("bad-.example.com")
        assert is_valid is False

    def test_empty_label(self):
        is_valid, error = validate_domain("example..com")
        assert is_valid is False
        assert "empty" in error.lower()

    def test_underscore_rejected(self):
        is_valid, _ = validate_domain("my_site.example.com")
        assert is_valid is False

    def test_label_too_long(self):
        is_valid, error = validate_domain("a" * 64 + ".com")
        assert is_valid is False
        assert "label" in error.lower()

    def test_label_at_limit(self):
        is_valid, _ = validate_domain("a" * 63 + ".com")
        assert is_valid is True

    def test_too_long_domain(self):
        domain = ".".join(["a" * 63] * 4) + ".com"
        is_valid, error = validate_domain(domain)
        assert is_valid is False
        assert "too long" in error.lower()

    def test_url_rejected(self):
        is_valid, error = validate_domain("https://example.com")
        assert is_valid is False
        assert "url" in error.lower()

    def test_path_rejected(self):
        is_valid, _ = validate_domain("example.com/profile")
        assert is_valid is False

    def test_email_rejected(self):
        is_valid, error = validate_domain("user@example.com")
        assert is_valid is False
        assert "email" in error.lower()

    def test_wildcard_rejected(self):
        is_valid, _ = validate_domain("*.example.com")
        assert is_valid is False
