"""
Exception hierarchy for packstore.

Every error also derives from the matching built-in exception so callers can
catch either the packstore type or the generic kind (ValueError,
PermissionError, LookupError, TypeError).
"""


class PackStoreError(Exception):
    """Base class for all packstore errors."""


class ValidationError(PackStoreError, ValueError):
    """Invalid input: empty payload, bad index field, bad argument mix."""


class ArgumentError(ValidationError):
    """A call was made with a combination of arguments that cannot be served."""


class IndexFieldTypeError(ValidationError, TypeError):
    """An index field was given a value of the wrong type."""

    def __init__(self, field: str, expected: str, value: object):
        super().__init__(
            f"Index field '{field}' must be {expected}, got {type(value).__name__}. "
            f"Index field types are fixed and never coerced."
        )
        self.field = field
        self.expected = expected


class AccessDenied(PackStoreError, PermissionError):
    """Write or delete attempted against a locked pack or without privilege."""


class NotFoundError(PackStoreError, LookupError):
    """An identifier resolved to no document (or pack)."""

    def __init__(self, reference: str, what: str = "entry"):
        super().__init__(
            f"Unable to load {what} '{reference}'. It may have been deleted; "
            f"run a new search to refresh results."
        )
        self.reference = reference
        self.what = what


class MalformedReference(PackStoreError, LookupError):
    """An entry locator could not be parsed into a pack/document pair."""

    def __init__(self, reference: str, reason: str = ""):
        msg = f"Malformed entry reference '{reference}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.reference = reference
