import math

import numpy as np
import pytest

from django_blog_search.exceptions import ValidationError
from django_blog_search.vectors import (
    sql_literal_to_vector,
    validate_vector,
    vector_to_sql_literal,
)


def test_vector_to_sql_literal():
    assert vector_to_sql_literal([0, 0.5, 0]) == "[0,0.5,0]"


def test_vector_to_sql_literal_accepts_numpy_floats():
    assert vector_to_sql_literal([np.float64(0.25), 1.5]) == "[0.25,1.5]"


@pytest.mark.parametrize("length", [1, 1536])
def test_sql_literal_round_trip(length):
    vector = [i / 7 - 0.5 for i in range(length)]

    assert sql_literal_to_vector(vector_to_sql_literal(vector)) == vector


def test_validate_vector_returns_floats():
    assert validate_vector((1, 2.5)) == [1.0, 2.5]


@pytest.mark.parametrize(
    "vector",
    [[], (), None, "0.1,0.2", {0.1, 0.2}],
)
def test_validate_vector_rejects_non_arrays(vector):
    with pytest.raises(ValidationError) as excinfo:
        validate_vector(vector)

    assert str(excinfo.value) == "Vector must be a non-empty array"


@pytest.mark.parametrize(
    "vector",
    [[math.nan], [0.1, math.inf], [-math.inf], [True, 0.5], ["0.1"], [None]],
)
def test_validate_vector_rejects_non_finite_numbers(vector):
    with pytest.raises(ValidationError) as excinfo:
        validate_vector(vector)

    assert str(excinfo.value) == "Vector must contain only finite numbers"


def test_validation_errors_are_value_errors():
    with pytest.raises(ValueError):
        vector_to_sql_literal([])


@pytest.mark.parametrize("literal", ["[]", "[1,2", "1,2]", "[1,abc]", "[1,nan]"])
def test_sql_literal_to_vector_rejects_malformed_literals(literal):
    with pytest.raises(ValidationError):
        sql_literal_to_vector(literal)
