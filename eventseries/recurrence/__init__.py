"""Recurrence rule evaluation."""

from .evaluator import (
    DEFAULT_MAX_OCCURRENCES,
    MAX_HORIZON_YEARS,
    RecurrenceEvaluator,
    generate_occurrences,
    is_date_in_pattern,
)
from .models import EvaluationOptions, Frequency, Occurrence, RecurrenceRule
from .rrule_text import build_rrule_string, describe_rule, parse_rrule_string

__all__ = [
    "DEFAULT_MAX_OCCURRENCES",
    "MAX_HORIZON_YEARS",
    "EvaluationOptions",
    "Frequency",
    "Occurrence",
    "RecurrenceEvaluator",
    "RecurrenceRule",
    "build_rrule_string",
    "describe_rule",
    "generate_occurrences",
    "is_date_in_pattern",
    "parse_rrule_string",
]
