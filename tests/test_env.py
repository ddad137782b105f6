"""
Tests for environment variable helpers used by config.py.
"""
import pytest

from utils.env import get_env_bool, get_env_int, get_env_str


class TestGetEnvStr:

    def test_strips_whitespace_by_default(self, monkeypatch):
        monkeypatch.setenv("QR_TEST_STRIP", "  https://stckr.io  ")
        assert get_env_str("QR_TEST_STRIP") == "https://stckr.io"

    def test_returns_default_when_empty_after_strip(self, monkeypatch):
        monkeypatch.setenv("QR_TEST_BLANK", "   ")
        assert get_env_str("QR_TEST_BLANK", default="fallback") == "fallback"

    def test_required_raises_on_missing(self, monkeypatch):
        monkeypatch.delenv("QR_TEST_MISSING", raising=False)
        with pytest.raises(ValueError, match="QR_TEST_MISSING"):
            get_env_str("QR_TEST_MISSING", required=True)


class TestGetEnvBool:

    @pytest.mark.parametrize("value", ["1", "true", "TRUE", " yes ", "on"])
    def test_truthy(self, monkeypatch, value):
        monkeypatch.setenv("QR_TEST_BOOL", value)
        assert get_env_bool("QR_TEST_BOOL") is True

    def test_other_values_are_false(self, monkeypatch):
        monkeypatch.setenv("QR_TEST_BOOL", "nope")
        assert get_env_bool("QR_TEST_BOOL", default=True) is False

    def test_default_when_unset(self, monkeypatch):
        monkeypatch.delenv("QR_TEST_BOOL", raising=False)
        assert get_env_bool("QR_TEST_BOOL", default=True) is True


class TestGetEnvInt:

    def test_parses_value(self, monkeypatch):
        monkeypatch.setenv("QR_TEST_INT", " 42 ")
        assert get_env_int("QR_TEST_INT", default=1) == 42

    def test_default_when_unset(self, monkeypatch):
        monkeypatch.delenv("QR_TEST_INT", raising=False)
        assert get_env_int("QR_TEST_INT", default=7) == 7

    def test_clamps_to_minimum(self, monkeypatch):
        monkeypatch.setenv("QR_TEST_INT", "2")
        assert get_env_int("QR_TEST_INT", default=6, minimum=6) == 6

    def test_non_integer_fails_fast(self, monkeypatch):
        monkeypatch.setenv("QR_TEST_INT", "three")
        with pytest.raises(ValueError, match="QR_TEST_INT"):
            get_env_int("QR_TEST_INT", default=3)
