"""Unit tests for metadata filter expressions: builders, parser, evaluator."""

from __future__ import annotations

import pytest

from ai_model_toolkit.exceptions import FilterExpressionError, PreconditionError
from ai_model_toolkit.vectorstores import filters as f
from ai_model_toolkit.vectorstores.filters import (
    Expression,
    ExpressionType,
    Group,
    Key,
    Value,
)

MOVIE = {"genre": "drama", "year": 2021, "rating": 7.5, "country": "FR"}


class TestBuilders:
    def test_comparison_shape(self) -> None:
        assert f.eq("genre", "drama") == Expression(
            ExpressionType.EQ, Key("genre"), Value("drama")
        )

    def test_in_copies_values_to_list(self) -> None:
        expr = f.in_("country", ("FR", "DE"))
        assert expr.right == Value(["FR", "DE"])

    def test_logical_nesting(self) -> None:
        expr = f.and_(f.eq("a", 1), f.group(f.or_(f.eq("b", 2), f.eq("c", 3))))
        assert expr.type is ExpressionType.AND
        assert isinstance(expr.right, Group)


class TestParser:
    def test_and_of_comparisons(self) -> None:
        parsed = f.parse("genre == 'drama' && year >= 2020")
        assert parsed == f.and_(f.eq("genre", "drama"), f.gte("year", 2020))

    def test_all_comparison_operators(self) -> None:
        cases = {
            "a == 1": f.eq("a", 1),
            "a != 1": f.ne("a", 1),
            "a > 1": f.gt("a", 1),
            "a >= 1": f.gte("a", 1),
            "a < 1.5": f.lt("a", 1.5),
            "a <= -2": f.lte("a", -2),
        }
        for text, expected in cases.items():
            assert f.parse(text) == expected, text

    def test_in_and_nin(self) -> None:
        assert f.parse("country in ['FR', 'DE']") == f.in_("country", ["FR", "DE"])
        assert f.parse("country nin ['US']") == f.nin("country", ["US"])
        assert f.parse("country NOT IN ['US']") == f.nin("country", ["US"])

    def test_keywords_are_case_insensitive(self) -> None:
        assert f.parse("a == 1 AND b == 2") == f.parse("a == 1 && b == 2")
        assert f.parse("a == 1 or b == 2") == f.parse("a == 1 || b == 2")

    def test_and_binds_tighter_than_or(self) -> None:
        parsed = f.parse("a == 1 || b == 2 && c == 3")
        assert parsed == f.or_(f.eq("a", 1), f.and_(f.eq("b", 2), f.eq("c", 3)))

    def test_parentheses_make_group(self) -> None:
        parsed = f.parse("(a == 1 || b == 2) && c == 3")
        assert parsed == f.and_(
            f.group(f.or_(f.eq("a", 1), f.eq("b", 2))), f.eq("c", 3)
        )

    def test_negation(self) -> None:
        assert f.parse("!(year < 2000)") == f.not_(f.group(f.lt("year", 2000)))

    def test_literals(self) -> None:
        assert f.parse('title == "It\'s"') == f.eq("title", "It's")
        assert f.parse("active == true") == f.eq("active", True)
        assert f.parse("score >= 1e3") == f.gte("score", 1000.0)

    def test_dotted_keys(self) -> None:
        assert f.parse("meta.source == 'web'") == f.eq("meta.source", "web")

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "genre ==",
            "genre 'drama'",
            "== 'drama'",
            "genre == 'drama' &&",
            "(genre == 'drama'",
            "genre == 'drama')",
            "genre @ 1",
            "country in 'FR'",
            "a == b",
        ],
    )
    def test_invalid_filters(self, text: str) -> None:
        with pytest.raises(FilterExpressionError):
            f.parse(text)

    def test_parse_error_is_precondition_error(self) -> None:
        with pytest.raises(PreconditionError):
            f.parse("genre ==")


class TestEvaluate:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("genre == 'drama' && year >= 2020", True),
            ("genre == 'comedy' || rating > 7", True),
            ("genre == 'comedy' || rating > 8", False),
            ("year < 2021", False),
            ("year <= 2021", True),
            ("country in ['FR', 'DE']", True),
            ("country nin ['FR', 'DE']", False),
            ("!(genre == 'drama')", False),
            ("genre != 'drama'", False),
        ],
    )
    def test_against_metadata(self, text: str, expected: bool) -> None:
        assert f.evaluate(f.parse(text), MOVIE) is expected

    def test_missing_key(self) -> None:
        assert not f.evaluate(f.eq("director", "x"), MOVIE)
        assert not f.evaluate(f.gt("budget", 1), MOVIE)
        assert not f.evaluate(f.in_("director", ["x"]), MOVIE)
        assert f.evaluate(f.ne("director", "x"), MOVIE)
        assert f.evaluate(f.nin("director", ["x"]), MOVIE)

    def test_incompatible_types_do_not_match(self) -> None:
        assert not f.evaluate(f.gt("genre", 5), MOVIE)

    def test_malformed_comparison(self) -> None:
        bad = Expression(ExpressionType.EQ, Value(1), Value(1))
        with pytest.raises(FilterExpressionError):
            f.evaluate(bad, MOVIE)


class TestToFilter:
    def test_passes_through_parsed_and_none(self) -> None:
        expr = f.eq("a", 1)
        assert f.to_filter(expr) is expr
        assert f.to_filter(None) is None
        assert f.to_filter("   ") is None

    def test_parses_text(self) -> None:
        assert f.to_filter("a == 1") == f.eq("a", 1)

    def test_rejects_other_types(self) -> None:
        with pytest.raises(FilterExpressionError):
            f.to_filter(42)  # type: ignore[arg-type]
