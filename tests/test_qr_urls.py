"""
Canonical URL helpers: the strings printed on stickers must never drift.
"""
import pytest

from utils.qr_codes import normalize_code_key
from utils.qr_urls import app_deep_link, code_landing_url


def test_landing_url_is_bit_exact():
    assert code_landing_url("https://stckr.io", "X7QK2P") == "https://stckr.io/qr/X7QK2P"


def test_landing_url_strips_trailing_slash():
    assert code_landing_url("https://stckr.io/", "X7QK2P") == "https://stckr.io/qr/X7QK2P"


def test_deep_link_format():
    assert app_deep_link("stckr", "X7QK2P") == "stckr://qr/X7QK2P"
    assert app_deep_link("stckr://", "X7QK2P") == "stckr://qr/X7QK2P"


@pytest.mark.parametrize("builder", [
    lambda key: code_landing_url("https://stckr.io", key),
    lambda key: app_deep_link("stckr", key),
])
def test_urls_normalize_back_to_key(builder):
    assert normalize_code_key(builder("X7QK2P")) == "X7QK2P"


def test_empty_key_rejected():
    with pytest.raises(ValueError):
        code_landing_url("https://stckr.io", "")
    with pytest.raises(ValueError):
        app_deep_link("stckr", "")
