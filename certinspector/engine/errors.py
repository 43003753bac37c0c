"""Exception types that cross the engine boundary.

Per-hostname probe failures never show up here: they are folded into the
`DomainResult` of the affected hostname.
"""


class InvalidInputError(ValueError):
    """The target is empty or cannot be parsed as an HTTP(S) URL."""


class ForbiddenTargetError(InvalidInputError):
    """The target uses another scheme or points at loopback/private/link-local space."""


class CollectorError(RuntimeError):
    """The page could not be loaded, so no hostname set exists for the run."""
