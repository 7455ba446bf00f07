class TemplateError(Exception):
    """Base exception for template store and sync failures."""


class StoreError(TemplateError):
    """Raised when the template store rejects an operation."""


class RecordNotFound(StoreError):
    """Raised when a record id does not exist in the requested scope."""
