"""Tests for novel_engine.conditions — grammar, semantics and fail-closed evaluation."""

import pytest

from novel_engine.conditions import (
    CACHE_SIZE,
    ConditionError,
    compile_condition,
    evaluate,
    validate_condition,
)

VARS = {
    "gold": 10,
    "name": "Ada",
    "flag": True,
    "off": False,
    "nothing": None,
    "ratio": 0.5,
    "inventory": {"key": True, "coins": 3},
}


# ---------------------------------------------------------------------------
# Comparisons
# ---------------------------------------------------------------------------

class TestComparisons:
    @pytest.mark.parametrize("expr, expected", [
        ("gold == 10", True),
        ("gold != 10", False),
        ("gold === 10", True),
        ("gold !== 9", True),
        ("gold > 9", True),
        ("gold >= 10", True),
        ("gold < 10", False),
        ("gold <= 10.0", True),
        ("ratio < 1", True),
        ("gold > -1", True),
        ("name == 'Ada'", True),
        ('name == "Ada"', True),
        ("name < 'Bob'", True),
        ("flag == true", True),
        ("off == false", True),
        ("nothing == null", True),
        ("'it\\'s' == \"it's\"", True),
    ])
    def test_comparison(self, expr: str, expected: bool) -> None:
        assert evaluate(expr, VARS) is expected

    def test_booleans_never_equal_numbers(self) -> None:
        assert evaluate("flag == 1", VARS) is False
        assert evaluate("off == 0", VARS) is False
        assert evaluate("flag != 1", VARS) is True

    def test_ordering_mixed_types_is_false(self) -> None:
        assert evaluate("name > 3", VARS) is False
        assert evaluate("flag > 0", VARS) is False
        assert evaluate("nothing < 1", VARS) is False


# ---------------------------------------------------------------------------
# Boolean connectives
# ---------------------------------------------------------------------------

class TestConnectives:
    @pytest.mark.parametrize("expr, expected", [
        ("flag && gold > 5", True),
        ("flag and off", False),
        ("off || gold == 10", True),
        ("off or off", False),
        ("!off", True),
        ("not flag", False),
        ("!!flag", True),
        ("!(gold > 5 && off)", True),
        ("off || flag && off", False),
        ("(off || flag) && flag", True),
    ])
    def test_connective(self, expr: str, expected: bool) -> None:
        assert evaluate(expr, VARS) is expected

    def test_or_short_circuits_past_unknown_variable(self) -> None:
        assert evaluate("flag || missing", VARS) is True

    def test_and_short_circuits_past_unknown_variable(self) -> None:
        assert evaluate("off && missing", VARS) is False


# ---------------------------------------------------------------------------
# Variables
# ---------------------------------------------------------------------------

class TestVariables:
    def test_bare_variable_uses_truthiness(self) -> None:
        assert evaluate("flag", VARS) is True
        assert evaluate("off", VARS) is False
        assert evaluate("gold", VARS) is True
        assert evaluate("nothing", VARS) is False

    def test_empty_collections_are_truthy(self) -> None:
        assert evaluate("items", {"items": []}) is True
        assert evaluate("bag", {"bag": {}}) is True
        assert evaluate("!items", {"items": []}) is False

    def test_zero_and_empty_string_are_falsy(self) -> None:
        assert evaluate("count", {"count": 0}) is False
        assert evaluate("ratio", {"ratio": 0.0}) is False
        assert evaluate("label", {"label": ""}) is False
        assert evaluate("nan", {"nan": float("nan")}) is False

    def test_dotted_lookup(self) -> None:
        assert evaluate("inventory.key", VARS) is True
        assert evaluate("inventory.coins >= 3", VARS) is True

    def test_unknown_variable_is_false(self) -> None:
        assert evaluate("missing == true", VARS) is False
        assert evaluate("!missing", VARS) is False

    def test_unknown_nested_key_is_false(self) -> None:
        assert evaluate("inventory.map", VARS) is False
        assert evaluate("gold.amount == 1", VARS) is False

    def test_variables_not_mutated(self) -> None:
        variables = {"gold": 10, "inventory": {"key": True}}
        evaluate("gold > 5 && inventory.key", variables)
        evaluate("syntax ((", variables)
        assert variables == {"gold": 10, "inventory": {"key": True}}


# ---------------------------------------------------------------------------
# Sandboxing and error handling
# ---------------------------------------------------------------------------

class TestFailClosed:
    @pytest.mark.parametrize("expr", [
        "",
        "   ",
        "gold >",
        "(gold > 1",
        "gold > 1)",
        "1 < gold < 20",
        "gold + 1 > 2",
        "__import__('os').system('true')",
        "len(name) > 1",
        "inventory['key']",
        "name == 'unterminated",
        "gold = 10",
    ])
    def test_invalid_expression_is_false(self, expr: str) -> None:
        assert evaluate(expr, VARS) is False

    def test_non_string_expression_is_false(self) -> None:
        assert evaluate(None, VARS) is False  # type: ignore[arg-type]

    def test_deep_nesting_is_false(self) -> None:
        assert evaluate("(" * 5000 + "flag" + ")" * 5000, VARS) is False

    def test_oversized_number_literal_is_false(self) -> None:
        assert evaluate("gold < " + "1" * 5000, VARS) is False
        assert evaluate("gold < " + "1" * 5000 + ".5", VARS) is True

    def test_oversized_number_literal_is_a_syntax_error(self) -> None:
        with pytest.raises(ConditionError):
            compile_condition("gold == " + "9" * 5000)
        assert "too large" in validate_condition("x == " + "1" * 5000)

    def test_compile_raises_condition_error(self) -> None:
        with pytest.raises(ConditionError):
            compile_condition("gold >")

    def test_condition_error_is_value_error(self) -> None:
        assert issubclass(ConditionError, ValueError)

    def test_compiled_conditions_are_cached(self) -> None:
        assert compile_condition("gold > 1") is compile_condition("gold > 1")

    def test_cache_is_bounded(self) -> None:
        for i in range(CACHE_SIZE + 10):
            compile_condition(f"gold > {i}")
        assert compile_condition.cache_info().currsize <= CACHE_SIZE

    def test_validate_condition(self) -> None:
        assert validate_condition("gold > 1 && flag") is None
        assert "Unexpected" in validate_condition("gold > > 1")
