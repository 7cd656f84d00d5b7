class PriceCoreError(Exception):
    """Base price core error."""


class ProviderUnavailableError(PriceCoreError):
    """Raised when an upstream API is unavailable."""


class NotFoundError(PriceCoreError):
    """Raised when an upstream API has no data for the requested asset."""


class MalformedResponseError(PriceCoreError):
    """Raised when an upstream payload does not match its schema."""


class ValidationError(PriceCoreError):
    """Raised for invalid caller input."""
