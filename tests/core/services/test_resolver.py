from __future__ import annotations

import pytest

from histvault.core.exceptions import ConfigurationError
from histvault.core.models import Instrument, SecurityType
from histvault.core.services import normalize_market, parse_security_type, resolve


class TestParseSecurityType:
    @pytest.mark.parametrize(
        ("token", "expected"),
        [
            ("equity", SecurityType.EQUITY),
            ("Forex", SecurityType.FOREX),
            ("CRYPTO", SecurityType.CRYPTO),
            ("IndexOption", SecurityType.INDEX_OPTION),
            ("crypto-future", SecurityType.CRYPTO_FUTURE),
            ("Commodity", SecurityType.COMMODITY),
            ("base", SecurityType.BASE),
            (SecurityType.CFD, SecurityType.CFD),
        ],
    )
    def test_parses_tokens(self, token: str | SecurityType, expected: SecurityType) -> None:
        assert parse_security_type(token) is expected

    @pytest.mark.parametrize("token", [None, "", "   "])
    def test_blank_defaults_to_equity(self, token: str | None) -> None:
        assert parse_security_type(token) is SecurityType.EQUITY

    def test_unknown_token_is_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError) as excinfo:
            parse_security_type("bond")

        assert excinfo.value.details["parameter"] == "security_type"


class TestResolve:
    def test_default_market(self) -> None:
        instrument = resolve("SPY", "equity", None)

        assert instrument == Instrument(ticker="SPY", security_type=SecurityType.EQUITY, market="usa")

    def test_trims_ticker_and_lowercases_market(self) -> None:
        instrument = resolve("  EURUSD ", "forex", " Oanda ")

        assert instrument.ticker == "EURUSD"
        assert instrument.market == "oanda"
        assert instrument.security_type is SecurityType.FOREX

    def test_blank_ticker_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            resolve("  ", "equity", None)

    def test_same_input_resolves_to_equal_instruments(self) -> None:
        assert resolve("SPY", "equity", "usa") == resolve("SPY", SecurityType.EQUITY, "")


@pytest.mark.parametrize(("market", "expected"), [(None, "usa"), ("", "usa"), ("GDAX", "gdax")])
def test_normalize_market(market: str | None, expected: str) -> None:
    assert normalize_market(market) == expected
