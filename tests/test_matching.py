"""Tests for command-name normalization and similarity scoring."""

import re

import pytest

from switchboard.matching import normalize, similarity, suggest, transliterate

SAMPLES = [
    "ping", "PING", "p1ng", "P!NG 2", "h3lp", "Çay", "ünlü", "  spaced  out ",
    "0day", "9lives", "4x4", "", "__", "ÄÖÜ", "mixedCASE_123",
]


class TestNormalize:
    """Tests for normalize()."""

    def test_digit_maps_to_alphabet_position(self):
        assert normalize("p1ng") == normalize("pang") == "pang"

    def test_lowercases_and_strips_punctuation(self):
        assert normalize("P!NG") == "png"
        assert normalize("He-Llo World") == "helloworld"

    def test_zero_passes_through(self):
        assert normalize("0day") == "0day"

    def test_non_ascii_targets_are_stripped(self):
        # 4 -> ç and 9 -> ğ, neither survives the ASCII filter
        assert transliterate("4") == "ç"
        assert normalize("4") == ""
        assert normalize("9lives") == "lives"

    def test_other_digits(self):
        assert normalize("h5lp") == "hdlp"
        assert normalize("8") == "g"

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty_input(self, value):
        assert normalize(value) == ""

    @pytest.mark.parametrize("value", SAMPLES)
    def test_idempotent(self, value):
        once = normalize(value)
        assert normalize(once) == once

    @pytest.mark.parametrize("value", SAMPLES)
    def test_output_alphabet(self, value):
        assert re.fullmatch(r"[a-z0-9]*", normalize(value))


class TestSimilarity:
    """Tests for the Jaro-Winkler scorer."""

    @pytest.mark.parametrize("value", ["a", "ping", "helloworld"])
    def test_identity(self, value):
        assert similarity(value, value) == 1.0

    def test_empty_is_zero(self):
        assert similarity("ping", "") == 0.0
        assert similarity("", "ping") == 0.0
        assert similarity(None, "ping") == 0.0

    @pytest.mark.parametrize("a,b", [
        ("ping", "pong"),
        ("martha", "marhta"),
        ("help", "hlep"),
        ("ban", "unban"),
    ])
    def test_symmetric(self, a, b):
        assert similarity(a, b) == pytest.approx(similarity(b, a))

    def test_known_value(self):
        assert similarity("martha", "marhta") == pytest.approx(0.9611, abs=1e-3)

    def test_no_common_characters(self):
        assert similarity("abc", "xyz") == 0.0

    def test_in_unit_interval(self):
        for a in SAMPLES:
            for b in SAMPLES:
                score = similarity(normalize(a), normalize(b))
                assert 0.0 <= score <= 1.0


class TestSuggest:
    def test_close_match_suggested(self):
        assert suggest("png", ["help", "ping"], 0.85) == "ping"

    def test_below_threshold(self):
        assert suggest("xyz", ["ping", "help"], 0.85) is None

    def test_empty_token(self):
        assert suggest("!!", ["ping"], 0.1) is None
