"""Validation package."""

from finnan.validation.coercion import COERCIONS, coerce
from finnan.validation.validator import SCHEMAS, PayloadValidator

__all__ = [
    "COERCIONS",
    "SCHEMAS",
    "PayloadValidator",
    "coerce",
]
