"""Condition evaluation against submitted form data"""
import pytest

from signoff.domain.models import Condition, ConditionGroup, ConditionRule
from signoff.engine.condition_evaluator import ConditionEvaluator


@pytest.fixture
def evaluator():
    return ConditionEvaluator()


def cond(field, operator, value=None):
    return Condition(field=field, operator=operator, value=value)


@pytest.mark.parametrize("operator,value,expected", [
    (">", 1000, True),
    (">", 5000, False),
    ("<", 10000, True),
    (">=", 5000, True),
    ("<=", 4999, False),
    ("==", "5000", True),
    ("!=", 5000, False),
])
def test_numeric_operators(evaluator, operator, value, expected):
    assert evaluator.evaluate_condition({"amount": 5000}, cond("amount", operator, value)) is expected


def test_numeric_strings_are_parsed(evaluator):
    assert evaluator.evaluate_condition({"amount": " 1500.5 "}, cond("amount", ">", "1000"))


def test_unparseable_numbers_are_false(evaluator):
    data = {"amount": "a lot", "blank": "  ", "flag": True}
    assert not evaluator.evaluate_condition(data, cond("amount", ">", 1))
    assert not evaluator.evaluate_condition(data, cond("blank", "<", 1))
    assert not evaluator.evaluate_condition(data, cond("flag", ">", 0))


def test_equality_falls_back_to_case_insensitive_text(evaluator):
    data = {"dept": "Finance", "urgent": True}
    assert evaluator.evaluate_condition(data, cond("dept", "==", "finance"))
    assert evaluator.evaluate_condition(data, cond("dept", "!=", "Sales"))
    assert evaluator.evaluate_condition(data, cond("urgent", "==", "TRUE"))


@pytest.mark.parametrize("operator,value,expected", [
    ("contains", "BUDGET", True),
    ("startsWith", "q3", True),
    ("endsWith", "review", True),
    ("endsWith", "q3", False),
])
def test_text_operators(evaluator, operator, value, expected):
    data = {"title": "Q3 budget review"}
    assert evaluator.evaluate_condition(data, cond("title", operator, value)) is expected


def test_empty_checks(evaluator):
    data = {"note": "   ", "tags": [], "owner": "sam"}
    assert evaluator.evaluate_condition(data, cond("note", "isEmpty"))
    assert evaluator.evaluate_condition(data, cond("tags", "isEmpty"))
    assert evaluator.evaluate_condition(data, cond("owner", "isNotEmpty"))


def test_missing_field_never_matches(evaluator):
    for operator in ("==", "!=", "isEmpty", "isNotEmpty", ">"):
        assert not evaluator.evaluate_condition({}, cond("amount", operator, 1))


def test_unknown_operator_is_false(evaluator):
    assert not evaluator.evaluate_condition({"amount": 1}, cond("amount", "~=", 1))


def test_nested_field_lookup(evaluator):
    data = {"vendor": {"country": "DE"}, "vendor.tier": "gold"}
    assert evaluator.evaluate_condition(data, cond("vendor.country", "==", "de"))
    # An exact key wins over walking the path
    assert evaluator.evaluate_condition(data, cond("vendor.tier", "==", "gold"))
    assert not evaluator.evaluate_condition(data, cond("vendor.country.code", "==", "DE"))


def test_group_logic(evaluator):
    data = {"amount": 50, "dept": "IT"}
    conditions = [cond("amount", ">", 100), cond("dept", "==", "it")]
    assert not evaluator.evaluate_condition_group(data, ConditionGroup(logic="AND", conditions=conditions))
    assert evaluator.evaluate_condition_group(data, ConditionGroup(logic="or", conditions=conditions))
    assert not evaluator.evaluate_condition_group(data, ConditionGroup(logic="XOR", conditions=conditions))


def test_empty_group_is_false(evaluator):
    assert not evaluator.evaluate_condition_group({"a": 1}, ConditionGroup(logic="AND"))
    assert not evaluator.evaluate_condition_group({"a": 1}, ConditionGroup(logic="OR"))


def test_first_matching_rule_wins(evaluator):
    rules = [
        ConditionRule(
            rule_id="r1", output_point="out-a",
            condition_group=ConditionGroup(conditions=[cond("amount", ">", 10)])
        ),
        ConditionRule(
            rule_id="r2", output_point="out-b",
            condition_group=ConditionGroup(conditions=[cond("amount", ">", 1)])
        ),
    ]
    assert evaluator.evaluate_rules({"amount": 50}, rules).rule_id == "r1"
    assert evaluator.evaluate_rules({"amount": 5}, rules).rule_id == "r2"
    assert evaluator.evaluate_rules({"amount": 0}, rules) is None
    assert evaluator.evaluate_rules({"amount": 0}, []) is None


def test_descriptions(evaluator):
    group = ConditionGroup(logic="or", conditions=[cond("amount", ">", 1000), cond("note", "isEmpty")])
    assert evaluator.describe_condition_group(group) == "amount > 1000 OR note isEmpty"
    assert evaluator.describe_condition_group(ConditionGroup()) == "no conditions"
