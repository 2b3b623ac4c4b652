# test/test_variable_domain.py
import pytest

from trendscope.core import Domain, InvalidDomain, InvalidVariable, Variable, VariableId


def test_variable_id_label_composition():
    assert VariableId("TEMP", "A1").label == "TEMP (A1)"
    assert VariableId("TEMP", "").label == "TEMP"
    assert VariableId("TEMP", "  ").label == "TEMP"
    assert VariableId("TEMP", None).aux_attribute == ""


def test_variable_id_is_hashable_identity():
    assert VariableId("TEMP", "A1") == VariableId("TEMP", "A1")
    assert VariableId("TEMP", "A1") != VariableId("TEMP", "A2")
    assert len({VariableId("TEMP", "A1"), VariableId("TEMP", "A1")}) == 1


def test_variable_id_rejects_empty_key():
    with pytest.raises(InvalidVariable):
        VariableId("", "A1")
    with pytest.raises(InvalidVariable):
        VariableId("   ")


def test_variable_defaults_label_and_keeps_selected():
    var = Variable.from_key("PRESS", "B2", selected=True)
    assert var.display_label == "PRESS (B2)"
    assert var.selected is True
    assert var.series_key == "PRESS"
    assert var.aux_attribute == "B2"

    other = var.with_selected(False)
    assert other.selected is False
    assert var.selected is True


def test_variable_rejects_non_id():
    with pytest.raises(InvalidVariable):
        Variable(id=("PRESS", "B2"))


def test_domain_validation():
    d = Domain(1, 5)
    assert d.start == 1.0 and d.end == 5.0
    assert d.width == 4.0
    assert not d.is_empty
    assert Domain(3.0, 3.0).is_empty

    with pytest.raises(InvalidDomain):
        Domain(5.0, 1.0)
    with pytest.raises(InvalidDomain):
        Domain(float("nan"), 1.0)
    with pytest.raises(InvalidDomain):
        Domain("a", 1.0)


def test_domain_ordered_spanning_and_contains():
    assert Domain.ordered(9.0, 2.0) == Domain(2.0, 9.0)
    assert Domain.spanning([Domain(2.0, 3.0), Domain(0.0, 1.0)]) == Domain(0.0, 3.0)
    assert Domain.spanning([]) is None

    d = Domain(0.0, 10.0)
    assert d.contains(0.0) and d.contains(10.0) and not d.contains(10.5)
    assert d.covers(Domain(2.0, 3.0))
    assert not Domain(2.0, 3.0).covers(d)


def test_domain_shift_within_keeps_width():
    bounds = Domain(0.0, 10.0)
    assert Domain(-2.0, 3.0).shift_within(bounds) == Domain(0.0, 5.0)
    assert Domain(8.0, 12.0).shift_within(bounds) == Domain(6.0, 10.0)
    assert Domain(12.0, 20.0).shift_within(bounds) == Domain(2.0, 10.0)
    assert Domain(2.0, 4.0).shift_within(bounds) == Domain(2.0, 4.0)
    # wider than the bounds
    assert Domain(-5.0, 15.0).shift_within(bounds) == bounds
    assert Domain(-5.0, 5.0).shift_within(Domain(0.0, 10.0)) == Domain(0.0, 10.0)
