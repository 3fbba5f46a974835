"""Domain name normalization and validation utilities."""

import re
from typing import Tuple

MAX_DOMAIN_LENGTH = 253
MAX_LABEL_LENGTH = 63

# Single DNS label: alphanumerics and hyphens, no leading/trailing hyphen
LABEL_REGEX = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")

# Alphabetic TLD of 2+ chars, or an IDN punycode TLD
TLD_REGEX = re.compile(r"^(?:[a-z]{2,63}|xn--[a-z0-9-]{1,59})$")


def normalize_domain(raw_domain: str) -> str:
    """
    Normalize a user-supplied domain for storage and comparison.

    Strips whitespace, lowercases, and drops a single trailing root dot.
    """
    domain = (raw_domain or "").strip().lower()
    if domain.endswith("."):
        domain = domain[:-1]
    return domain


def validate_domain(domain: str) -> Tuple[bool, str | None]:
    """
    Validate an already-normalized domain name.

    Args:
        domain: Lowercase domain name

    Returns:
        Tuple of (is_valid, error_message)
        If valid, error_message is None
    """
    if not domain:
        return False, "Domain is required"

    if len(domain) > MAX_DOMAIN_LENGTH:
        return False, f"Domain is too long (max {MAX_DOMAIN_LENGTH} characters)"

    if "://" in domain or "/" in domain:
        return False, "Provide a bare domain name, not a URL"

    if "@" in domain:
        return False, "Provide a domain, not an email address"

    labels = domain.split(".")
    if len(labels) < 2:
        return False, "Domain must contain at least one dot"

    for label in labels:
        if not label:
            return False, "Domain cannot contain empty labels"
        if len(label) > MAX_LABEL_LENGTH:
            return False, f"Domain label is too long (max {MAX_LABEL_LENGTH} characters)"
        if not LABEL_REGEX.match(label):
            return False, f"Invalid domain label: {label}"

    if not TLD_REGEX.match(labels[-1]):
        return False, "Top-level domain must be at least 2 letters"

    return True, None
