"""Validation and text encoding of embedding vectors."""

import math
from numbers import Real
from typing import Sequence

from .exceptions import ValidationError


def validate_vector(vector: Sequence[float], *, name: str = "Vector") -> list[float]:
    """Check a vector is a non-empty sequence of finite numbers.

    Returns the vector as a list of floats.
    """
    if not isinstance(vector, (list, tuple)) or len(vector) == 0:
        raise ValidationError(f"{name} must be a non-empty array")

    for value in vector:
        if (
            isinstance(value, bool)
            or not isinstance(value, Real)
            or not math.isfinite(value)
        ):
            raise ValidationError(f"{name} must contain only finite numbers")

    return [float(value) for value in vector]


def vector_to_sql_literal(vector: Sequence[float]) -> str:
    """Format a vector as a pgvector text literal, e.g. ``[0.1,0.2,0.3]``.

    The literal is always passed to the database as a bound parameter.
    """
    validate_vector(vector)
    return "[" + ",".join(_format_value(value) for value in vector) + "]"


def _format_value(value: float) -> str:
    if isinstance(value, int):
        return str(value)
    # repr of a Python float is the shortest string that round-trips exactly.
    return repr(float(value))


def sql_literal_to_vector(literal: str) -> list[float]:
    """Parse a pgvector text literal back into a list of floats."""
    literal = literal.strip()
    if not (literal.startswith("[") and literal.endswith("]")):
        raise ValidationError(f"Not a vector literal: {literal[:50]!r}")

    body = literal[1:-1].strip()
    if not body:
        raise ValidationError("Vector must be a non-empty array")

    try:
        return validate_vector([float(value) for value in body.split(",")])
    except ValueError as exc:
        if isinstance(exc, ValidationError):
            raise
        raise ValidationError(f"Not a vector literal: {literal[:50]!r}") from exc
