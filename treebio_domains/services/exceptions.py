"""Error kinds raised by the custom domain lifecycle."""


class DomainError(Exception):
    """Base exception for custom domain operations."""

    code = "DOMAIN_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidDomainFormatError(DomainError):
    """Domain string is not a valid fully-qualified domain name."""

    code = "INVALID_FORMAT"


class DomainAlreadyRegisteredError(DomainError):
    """Domain is already claimed by some owner."""

    code = "ALREADY_REGISTERED"


class DomainQuotaExceededError(DomainError):
    """Owner already holds the maximum number of domains."""

    code = "QUOTA_EXCEEDED"

    def __init__(self, message: str, current: int, limit: int):
        super().__init__(message)
        self.current = current
        self.limit = limit


class DomainNotFoundError(DomainError):
    """No record with the given id."""

    code = "NOT_FOUND"


class DomainForbiddenError(DomainError):
    """Caller does not own the record."""

    code = "FORBIDDEN"


class DomainNotVerifiedError(DomainError):
    """Activation attempted before ownership was verified."""

    code = "NOT_VERIFIED"


class DomainConflictError(DomainError):
    """Record changed between read and conditional write."""

    code = "CONFLICT"
