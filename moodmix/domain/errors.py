class AdapterFailure(Exception):
    """A single upstream call failed. Recovered locally by the dispatcher."""


class TemporaryFailure(AdapterFailure):
    """Transient provider or network failure, including request timeouts."""


class PermanentFailure(AdapterFailure):
    """Non-retriable failure due to invalid input, missing credentials or authorization issues."""


class NotFound(AdapterFailure):
    """Upstream answered but had nothing for the query."""


class ValidationFailure(Exception):
    """Generation input is malformed or empty. Raised before any upstream call is made."""


class ShapeMismatch(Exception):
    """Payload is neither a sequence nor a mapping and cannot be normalized."""
