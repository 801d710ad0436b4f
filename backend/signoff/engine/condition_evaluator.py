"""Condition Evaluator - Safe evaluation of branch conditions"""
import math
from typing import Any, Dict, List, Optional

from ..domain.models import Condition, ConditionGroup, ConditionRule
from ..domain.enums import ConditionOperator, ConditionLogic
from ..utils.logger import get_logger

logger = get_logger(__name__)


_NUMERIC_OPERATORS = {
    ConditionOperator.GREATER_THAN: lambda a, b: a > b,
    ConditionOperator.LESS_THAN: lambda a, b: a < b,
    ConditionOperator.GREATER_THAN_OR_EQUALS: lambda a, b: a >= b,
    ConditionOperator.LESS_THAN_OR_EQUALS: lambda a, b: a <= b,
}

_LOGIC_LABELS = {
    ConditionLogic.AND.value: " AND ",
    ConditionLogic.OR.value: " OR ",
}


class ConditionEvaluator:
    """
    Evaluate branch conditions against submitted form data

    Uses a simple DSL - no eval() or exec(). Evaluation is total: missing
    fields, unparseable operands and unknown operators all resolve to False.
    """

    def evaluate_condition(self, data: Dict[str, Any], condition: Condition) -> bool:
        """
        Evaluate a single comparison

        Args:
            data: Submitted form values
            condition: Field, operator and comparison value

        Returns:
            True if the comparison holds
        """
        field_value = self._get_field_value(condition.field, data)

        # Missing field never matches, whatever the operator
        if field_value is None:
            return False

        try:
            operator = ConditionOperator(condition.operator)
        except ValueError:
            logger.warning(f"Unknown condition operator: {condition.operator!r}")
            return False

        return self._compare(field_value, operator, condition.value)

    def evaluate_condition_group(self, data: Dict[str, Any], group: ConditionGroup) -> bool:
        """
        Evaluate a condition group

        An empty group is False for both AND and OR, so a rule without
        conditions never matches.
        """
        if not group.conditions:
            return False

        logic = (group.logic or "").upper()

        if logic == ConditionLogic.AND.value:
            return all(self.evaluate_condition(data, c) for c in group.conditions)

        if logic == ConditionLogic.OR.value:
            return any(self.evaluate_condition(data, c) for c in group.conditions)

        logger.warning(f"Unknown condition logic: {group.logic!r}")
        return False

    def evaluate_rules(
        self,
        data: Dict[str, Any],
        rules: List[ConditionRule]
    ) -> Optional[ConditionRule]:
        """Return the first rule whose group matches, in declaration order"""
        for rule in rules or []:
            if self.evaluate_condition_group(data, rule.condition_group):
                return rule
        return None

    # =========================================================================
    # Descriptions
    # =========================================================================

    def describe_condition(self, condition: Condition) -> str:
        """Human readable form of a single condition"""
        if condition.operator in (ConditionOperator.IS_EMPTY.value, ConditionOperator.IS_NOT_EMPTY.value):
            return f"{condition.field} {condition.operator}"
        return f"{condition.field} {condition.operator} {condition.value}"

    def describe_condition_group(self, group: ConditionGroup) -> str:
        """Human readable form of a condition group"""
        if not group.conditions:
            return "no conditions"
        joiner = _LOGIC_LABELS.get((group.logic or "").upper(), f" {group.logic} ")
        return joiner.join(self.describe_condition(c) for c in group.conditions)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _get_field_value(self, field_path: str, data: Dict[str, Any]) -> Any:
        """
        Get field value from form data

        Exact keys win; otherwise dot notation walks nested dicts
        ("vendor.country" -> data["vendor"]["country"]).
        """
        if not isinstance(data, dict):
            return None
        if field_path in data:
            return data[field_path]

        value: Any = data
        for part in field_path.split("."):
            if isinstance(value, dict):
                value = value.get(part)
            else:
                return None
        return value

    def _compare(self, field_value: Any, operator: ConditionOperator, compare_value: Any) -> bool:
        """Compare values using operator"""
        if operator in _NUMERIC_OPERATORS:
            return self._compare_numeric(field_value, compare_value, _NUMERIC_OPERATORS[operator])

        if operator == ConditionOperator.EQUALS:
            return self._equals(field_value, compare_value)

        if operator == ConditionOperator.NOT_EQUALS:
            return not self._equals(field_value, compare_value)

        if operator == ConditionOperator.CONTAINS:
            return self._to_text(compare_value).lower() in self._to_text(field_value).lower()

        if operator == ConditionOperator.STARTS_WITH:
            return self._to_text(field_value).lower().startswith(self._to_text(compare_value).lower())

        if operator == ConditionOperator.ENDS_WITH:
            return self._to_text(field_value).lower().endswith(self._to_text(compare_value).lower())

        if operator == ConditionOperator.IS_EMPTY:
            return self._is_empty(field_value)

        if operator == ConditionOperator.IS_NOT_EMPTY:
            return not self._is_empty(field_value)

        return False

    def _compare_numeric(self, field_value: Any, compare_value: Any, comparator) -> bool:
        """Compare numeric values; False if either side is not a number"""
        a = self._parse_number(field_value)
        b = self._parse_number(compare_value)
        if a is None or b is None:
            return False
        return comparator(a, b)

    def _equals(self, field_value: Any, compare_value: Any) -> bool:
        """Numeric equality when both sides parse, else case-insensitive text"""
        a = self._parse_number(field_value)
        b = self._parse_number(compare_value)
        if a is not None and b is not None:
            return a == b
        return self._to_text(field_value).lower() == self._to_text(compare_value).lower()

    @staticmethod
    def _parse_number(value: Any) -> Optional[float]:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            try:
                number = float(text)
            except ValueError:
                return None
        else:
            return None
        return None if math.isnan(number) else number

    @staticmethod
    def _to_text(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    @staticmethod
    def _is_empty(value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, str):
            return value.strip() == ""
        if isinstance(value, (list, tuple, set, dict)):
            return len(value) == 0
        return False
