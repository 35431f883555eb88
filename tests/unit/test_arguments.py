"""Tests for checked argument coercion."""

from __future__ import annotations

import pytest

from vertext.core.errors import ArgumentError
from vertext.tools.arguments import Arguments, clamp


class TestGetStr:
    def test_present(self):
        assert Arguments({"q": "hello"}).get_str("q") == "hello"

    def test_absent_and_null_use_default(self):
        args = Arguments({"q": None})
        assert args.get_str("q", "d") == "d"
        assert args.get_str("missing") is None

    def test_wrong_type_raises(self):
        with pytest.raises(ArgumentError, match="Invalid argument 'q': expected string"):
            Arguments({"q": 5}).get_str("q")


class TestNumbers:
    @pytest.mark.parametrize(("raw", "expected"), [(3, 3.0), (0.25, 0.25), (" 0.5 ", 0.5)])
    def test_float_accepts(self, raw, expected):
        assert Arguments({"x": raw}).get_float("x") == expected

    @pytest.mark.parametrize("raw", [True, "abc", [1], "nan", "inf"])
    def test_float_rejects(self, raw):
        with pytest.raises(ArgumentError):
            Arguments({"x": raw}).get_float("x")

    @pytest.mark.parametrize(("raw", "expected"), [(7, 7), (7.0, 7), ("12", 12)])
    def test_int_accepts(self, raw, expected):
        assert Arguments({"n": raw}).get_int("n") == expected

    @pytest.mark.parametrize("raw", [7.5, "7.5", False, {"a": 1}])
    def test_int_rejects(self, raw):
        with pytest.raises(ArgumentError) as exc_info:
            Arguments({"n": raw}).get_int("n")
        assert exc_info.value.name == "n"

    def test_int_default(self):
        assert Arguments(None).get_int("n", 20) == 20


class TestGetBool:
    @pytest.mark.parametrize(("raw", "expected"), [(True, True), ("yes", True), ("0", False), ("False", False)])
    def test_accepts(self, raw, expected):
        assert Arguments({"b": raw}).get_bool("b") is expected

    def test_rejects_number(self):
        with pytest.raises(ArgumentError, match="boolean"):
            Arguments({"b": 1}).get_bool("b")


def test_contains_treats_null_as_absent():
    args = Arguments({"a": 1, "b": None})
    assert "a" in args
    assert "b" not in args
    assert args.raw("a") == 1


def test_clamp():
    assert clamp(500, 1, 200) == 200
    assert clamp(-3, 1, 200) == 1
    assert clamp(0.4, 0.0, 1.0) == 0.4
