"""eventseries - recurring event occurrence engine.

Computes the instants at which a recurring event occurs, keeping the local
wall-clock time fixed across DST transitions, and materializes those instants
as persisted events exactly once per local day.
"""

__version__ = "0.1.0"

from .exceptions import (
    BadRequestError,
    DuplicateOccurrenceError,
    EventSeriesError,
    IntegrityError,
    InvalidRuleError,
    InvalidTimezoneError,
    NotFoundError,
    OccurrenceTimeoutError,
    PartialBatchFailure,
)
from .recurrence import EvaluationOptions, Occurrence, RecurrenceEvaluator, RecurrenceRule, generate_occurrences
from .series import OccurrenceMaterializer, TenantContext

__all__ = [
    "BadRequestError",
    "DuplicateOccurrenceError",
    "EvaluationOptions",
    "EventSeriesError",
    "IntegrityError",
    "InvalidRuleError",
    "InvalidTimezoneError",
    "NotFoundError",
    "Occurrence",
    "OccurrenceMaterializer",
    "OccurrenceTimeoutError",
    "PartialBatchFailure",
    "RecurrenceEvaluator",
    "RecurrenceRule",
    "TenantContext",
    "__version__",
    "generate_occurrences",
]
