"""Exception hierarchy for the model repository.

Every error carries a short ``code`` (e.g. ``"ObjectNotFound"``) so callers
and the CLI can branch on the failure kind without parsing messages.
"""

from __future__ import annotations

from typing import Optional, Sequence


class ModelError(RuntimeError):
    """Base class for all repository errors."""

    code: str = "Operation"

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class QualifierParseError(ModelError, ValueError):
    """Raised when a qualifier string does not follow the grammar."""

    code = "InvalidQualifier"


class ObjectNotFoundError(ModelError, LookupError):
    """Raised when a model, item, object or file reference cannot be resolved."""

    code = "ObjectNotFound"


class DuplicateNameError(ModelError):
    """Raised when an add collides with an existing name."""

    code = "DuplicateName"


class UnsupportedOperationError(ModelError):
    """Raised for mutating calls against a read-only backend."""

    code = "UnsupportedOperation"


class ModelStoreError(ModelError):
    """Raised when reading or writing the backing store fails."""

    code = "StoreOperation"


class NoWritableBackendError(ModelError):
    """Raised when no backend of a multiplexer accepts a new model."""

    code = "NoWritableBackend"


class ModelValidationError(ModelError):
    """Aggregated failure after a reload or reset.

    The manager stays in its reloaded state; ``messages`` lists what went
    wrong, one line per problem.
    """

    code = "ModelValidationFailed"

    def __init__(self, messages: Sequence[str]) -> None:
        self.messages = list(messages)
        text = "Model validation failed after reload:\n" + "\n".join(self.messages)
        super().__init__(text)
