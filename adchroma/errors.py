"""Typed failures raised by the collection store and vector indexes."""


class AdChromaError(Exception):
    """Base class for all adchroma failures."""


class NotFoundError(AdChromaError, LookupError):
    """Raised when a collection or embedding cannot be resolved."""


class AlreadyExistsError(AdChromaError):
    """Raised when a collection name is already taken."""


class DimensionMismatchError(AdChromaError, ValueError):
    """Raised when a vector length differs from the index dimensionality."""

    def __init__(self, received: int, expected: int, *, subject: str = "data") -> None:
        super().__init__(
            f"Dimension of {subject} {received} does not match index dimension {expected}"
        )
        self.received = received
        self.expected = expected


class OwnershipMismatchError(AdChromaError):
    """Raised when an embedding does not belong to the named collection."""


class DuplicateIdError(AdChromaError):
    """Raised when a non-update insert reuses a live id."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"The id {identifier} already exists in the index")
        self.identifier = identifier


class InvalidIndexStateError(AdChromaError, RuntimeError):
    """Raised when an index is used before it is initialized or registered."""


class RequestedCountExceedsAvailableError(AdChromaError, ValueError):
    """Raised when more neighbours are requested than live elements exist."""

    def __init__(self, requested: int, available: int) -> None:
        super().__init__(
            f"Number of requested results {requested} cannot be greater than "
            f"elements in index {available}"
        )
        self.requested = requested
        self.available = available
