"""Exception hierarchy for the catalog wire protocol."""

from __future__ import annotations


class WireError(Exception):
    """Base class for every error raised by ``tablewire``."""


class ConfigurationError(WireError):
    """The codec registry or configuration was assembled incorrectly.

    Raised at startup for duplicate or missing codec registrations and for
    invalid configuration values. Never recoverable at request time.
    """


class UnsupportedTypeError(WireError):
    """No codec is registered for the requested message type."""


class MalformedMessageError(WireError):
    """A message is missing required fields or has fields of the wrong shape.

    Parameters
    ----------
    message : str
        Human readable description.
    field : str | None
        Wire name of the offending field, when known.

    Examples
    --------
    >>> err = MalformedMessageError("Cannot parse missing string: name", field="name")
    >>> err.field
    'name'
    """

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class InvalidRequestError(MalformedMessageError, ValueError):
    """A request value violates its own invariants."""


class InvalidResponseError(WireError):
    """A response violates the scan-plan state machine.

    A well-behaved server never builds one of these, so seeing it means a
    server-side bug.
    """


class NoSuchPlanError(WireError):
    """No plan is tracked under the given plan id."""


class NoSuchPlanTaskError(WireError):
    """The plan-task token cannot be resolved."""
