"""Unit tests for player key normalization."""

import pytest

from coin_server.ledger import InvalidInputError, normalize_phone, require_player_key
from tests.constants import PHONE, RAW_PHONE


@pytest.mark.unit
class TestNormalizePhone:
    def test_strips_formatting(self):
        assert normalize_phone(RAW_PHONE) == PHONE

    def test_keeps_digits_only_input(self):
        assert normalize_phone("5550100") == "5550100"

    def test_dashes_and_plain_digits_match(self):
        assert normalize_phone("555-0100") == normalize_phone("5550100")

    def test_keeps_every_plus(self):
        assert normalize_phone("+1+2 3") == "+1+23"

    def test_drops_letters_and_unicode(self):
        assert normalize_phone("tel: 555 010０") == "555010"

    def test_none_gives_empty_key(self):
        assert normalize_phone(None) == ""

    def test_empty_and_symbols_give_empty_key(self):
        assert normalize_phone("") == ""
        assert normalize_phone("() - .") == ""

    def test_integer_input(self):
        assert normalize_phone(5550100) == "5550100"

    def test_idempotent(self):
        once = normalize_phone(RAW_PHONE)
        assert normalize_phone(once) == once


@pytest.mark.unit
class TestRequirePlayerKey:
    def test_returns_normalized_key(self):
        assert require_player_key(RAW_PHONE) == PHONE

    @pytest.mark.parametrize("raw", [None, "", "   ", "abc"])
    def test_rejects_empty_keys(self, raw):
        with pytest.raises(InvalidInputError, match="phone required"):
            require_player_key(raw)

    def test_custom_message(self):
        with pytest.raises(InvalidInputError, match="phone and gameId required"):
            require_player_key("", "phone and gameId required")

    def test_invalid_input_is_a_value_error(self):
        with pytest.raises(ValueError):
            require_player_key(None)
