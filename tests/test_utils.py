"""Tests for slugify and the small text helpers."""

from datetime import datetime

import pytest

from blogingest.utils import is_valid_slug, parse_date_like, random_slug, slugify, unquote


class TestSlugify:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Hello World", "hello-world"),
            ("my-post", "my-post"),
            ("  --Leading and trailing--  ", "leading-and-trailing"),
            ("a___b...c", "a-b-c"),
            ("Crème Brûlée 2024!", "cr-me-br-l-e-2024"),
            ("already--double---hyphen", "already-double-hyphen"),
            ("UPPER_case", "upper-case"),
        ],
    )
    def test_examples(self, raw: str, expected: str):
        assert slugify(raw) == expected

    @pytest.mark.parametrize("raw", ["", "   ", "---", "!!!", "日本語", None])
    def test_empty_result_falls_back_to_random(self, raw):
        slug = slugify(raw)
        assert slug
        assert is_valid_slug(slug)
        assert len(slug) == 32

    def test_random_fallback_differs_between_calls(self):
        assert slugify("") != slugify("")

    @pytest.mark.parametrize(
        "raw",
        ["x", "-x-", "a b\tc\nd", "ÄÖÜ ß", "../../etc/passwd", "C:\\Windows", "🙂 emoji 🙂", "1-2-3"],
    )
    def test_output_always_matches_slug_grammar(self, raw: str):
        assert is_valid_slug(slugify(raw))


class TestIsValidSlug:
    def test_accepts(self):
        assert is_valid_slug("a")
        assert is_valid_slug("my-post-1")
        assert is_valid_slug(random_slug())

    @pytest.mark.parametrize("bad", ["", "-a", "a-", "a--b", "A", "a_b", "a/b", ".."])
    def test_rejects(self, bad: str):
        assert not is_valid_slug(bad)


class TestUnquote:
    def test_strips_one_matching_layer(self):
        assert unquote('"Hello"') == "Hello"
        assert unquote("'Hello'") == "Hello"
        assert unquote("\"'nested'\"") == "'nested'"

    def test_leaves_unmatched_quotes(self):
        assert unquote('"Hello') == '"Hello'
        assert unquote("'a\"") == "'a\""
        assert unquote('"') == '"'


class TestParseDateLike:
    def test_iso_date(self):
        assert parse_date_like("2024-03-01") == datetime(2024, 3, 1)

    def test_iso_datetime(self):
        assert parse_date_like("2024-03-01T10:30:00") == datetime(2024, 3, 1, 10, 30)

    def test_quoted(self):
        assert parse_date_like('"2024-03-01"') == datetime(2024, 3, 1)

    def test_lenient_format(self):
        assert parse_date_like("March 5, 2023") == datetime(2023, 3, 5)

    @pytest.mark.parametrize("bad", ["", "   ", "banana", "\"\""])
    def test_unparseable_is_none(self, bad: str):
        assert parse_date_like(bad) is None
