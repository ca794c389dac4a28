from __future__ import annotations

from decimal import Decimal

import pytest

from retencoes.services.exceptions import InvalidInputError
from retencoes.utils.validators import (
    MAX_AMOUNT,
    parse_decimal,
    parse_sim_nao,
    validate_codigo_reinf,
    validate_gross_amount,
    validate_monetary,
    validate_percent,
)


class TestParseDecimal:
    def test_dot_notation(self):
        assert parse_decimal("19684.93") == Decimal("19684.93")

    def test_brazilian_notation(self):
        assert parse_decimal("19.684,93") == Decimal("19684.93")

    def test_currency_prefix(self):
        assert parse_decimal("R$ 1.000,00") == Decimal("1000.00")

    def test_percent_suffix(self):
        assert parse_decimal("4,80%") == Decimal("4.80")

    def test_float_goes_through_str(self):
        assert parse_decimal(1.2) == Decimal("1.2")

    def test_int(self):
        assert parse_decimal(5) == Decimal("5")

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "abc", "", None, True])
    def test_invalid(self, value):
        with pytest.raises(InvalidInputError, match="invalido"):
            parse_decimal(value)

    def test_is_value_error(self):
        with pytest.raises(ValueError):
            parse_decimal("x")


class TestValidateGrossAmount:
    def test_zero_allowed(self):
        assert validate_gross_amount("0") == 0

    def test_missing(self):
        with pytest.raises(InvalidInputError, match="ausente"):
            validate_gross_amount(None)

    def test_negative(self):
        with pytest.raises(InvalidInputError, match="negativo"):
            validate_gross_amount("-0,01")

    def test_ceiling_inclusive(self):
        assert validate_gross_amount(MAX_AMOUNT) == MAX_AMOUNT

    @pytest.mark.parametrize("value", ["1e28", "1000000000000000.01"])
    def test_above_ceiling(self, value):
        with pytest.raises(InvalidInputError, match="limite"):
            validate_gross_amount(value)


class TestValidateMonetary:
    def test_valid(self):
        assert validate_monetary("1.234,56") == Decimal("1234.56")

    def test_negative(self):
        with pytest.raises(InvalidInputError, match="negativo"):
            validate_monetary(-1)

    def test_above_ceiling(self):
        with pytest.raises(InvalidInputError, match="limite"):
            validate_monetary("2e15")


class TestValidatePercent:
    def test_valid(self):
        assert validate_percent("4.80") == Decimal("4.80")

    def test_bounds_inclusive(self):
        assert validate_percent("0") == 0
        assert validate_percent("100") == 100

    @pytest.mark.parametrize("value", ["-0.01", "100.01"])
    def test_out_of_range(self, value):
        with pytest.raises(InvalidInputError, match="entre 0.00 e 100.00"):
            validate_percent(value)


class TestValidateCodigoReinf:
    def test_valid(self):
        assert validate_codigo_reinf(" 17003 ") == "17003"

    @pytest.mark.parametrize("value", ["1700", "170033", "17a03", ""])
    def test_invalid(self, value):
        with pytest.raises(InvalidInputError, match="5 digitos"):
            validate_codigo_reinf(value)


class TestParseSimNao:
    @pytest.mark.parametrize("value", ["SIM", "sim", " Sim ", True, "S"])
    def test_true(self, value):
        assert parse_sim_nao(value) is True

    @pytest.mark.parametrize("value", ["NÃO", "NAO", "", None, False, "talvez"])
    def test_false(self, value):
        assert parse_sim_nao(value) is False
