# tests/base/test_query.py
import pytest

from async_sqlite_mapper.base.query import Condition, Field, Operator


@pytest.mark.parametrize(
    "build, operator",
    [
        (lambda f: f == 5, Operator.EQUALS),
        (lambda f: f != 5, Operator.NOT_EQUALS),
        (lambda f: f < 5, Operator.LESS_THAN),
        (lambda f: f > 5, Operator.GREATER_THAN),
        (lambda f: f <= 5, Operator.LESS_THAN_OR_EQUALS),
        (lambda f: f >= 5, Operator.GREATER_THAN_OR_EQUALS),
    ],
)
def test_field_comparisons_build_conditions(build, operator):
    condition = build(Field("Age"))
    assert condition == Condition("Age", operator, 5)
    assert condition.skip is False


def test_field_is_not_hashable():
    with pytest.raises(TypeError):
        hash(Field("Age"))


def test_field_repr_and_key():
    field = Field("Name")
    assert field.key == "Name"
    assert repr(field) == "Field('Name')"
