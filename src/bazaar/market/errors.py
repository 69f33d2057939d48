"""
Error taxonomy for the negotiation engine.

Engine code raises these; the service boundary turns them into Failure
outcomes so callers never see an exception for a caller-correctable problem.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ValidationKind(str, enum.Enum):
    EMPTY_ITEMS = "EmptyItems"
    INVALID_CATEGORIES = "InvalidCategories"
    INVALID_QUANTITY = "InvalidQuantity"
    NO_AVAILABLE_ITEMS = "NoAvailableItems"
    INVALID_PRICE = "InvalidPrice"
    DUPLICATE_OFFER = "DuplicateOffer"
    INCOMPLETE_CONTACT_DETAILS = "IncompleteContactDetails"
    MISSING_TITLE = "MissingTitle"
    DUPLICATE_ITEM = "DuplicateItem"
    INVALID_RENT_PERIOD = "InvalidRentPeriod"
    UNKNOWN_FIELD = "UnknownField"


class MarketError(Exception):
    """Base class for every recoverable negotiation failure."""

    code = "MARKET_ERROR"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(MarketError):
    code = "VALIDATION_ERROR"

    def __init__(self, kind: ValidationKind, message: str, **details: Any):
        super().__init__(message, **details)
        self.kind = kind


class InvalidTransition(MarketError):
    """Raised when an operation does not apply to the entity's current status."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, attempted: str, message: str = ""):
        super().__init__(
            message or f"Cannot move from '{from_status}' via '{attempted}'",
            from_status=from_status,
            attempted=attempted,
        )
        self.from_status = from_status
        self.attempted = attempted


class RequestTerminal(MarketError):
    code = "REQUEST_TERMINAL"

    def __init__(self, request_id: str, status: str):
        super().__init__(
            f"Request {request_id} is {status} and can no longer change",
            request_id=request_id,
            status=status,
        )
        self.request_id = request_id
        self.status = status


class NotFound(MarketError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            f"{entity} {entity_id} not found", entity=entity, entity_id=entity_id
        )


class Forbidden(MarketError):
    code = "FORBIDDEN"


class ConcurrentModification(MarketError):
    """A commit found an entity in a status other than the one it was built on."""

    code = "CONCURRENT_MODIFICATION"

    def __init__(self, entity_id: str, expected: str, actual: str | None):
        super().__init__(
            f"{entity_id} changed underneath the operation "
            f"(expected {expected}, found {actual})",
            entity_id=entity_id,
            expected=expected,
            actual=actual,
        )
        self.entity_id = entity_id
        self.expected = expected
        self.actual = actual


@dataclass
class Failure:
    """A failed operation, described for display and for programmatic recovery."""

    code: str
    message: str
    kind: str | None = None
    details: dict[str, Any] = field(default_factory=dict)
    ok: bool = False

    @classmethod
    def from_error(cls, error: MarketError) -> "Failure":
        kind = error.kind.value if isinstance(error, ValidationError) else None
        return cls(
            code=error.code,
            message=error.message,
            kind=kind,
            details=dict(error.details),
        )


@dataclass
class Success(Generic[T]):
    value: T
    events: list[Any] = field(default_factory=list)
    ok: bool = True


Outcome = Success[T] | Failure
