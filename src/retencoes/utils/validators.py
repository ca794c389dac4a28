from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from retencoes.services.exceptions import InvalidInputError

# Largest amount accepted for gross values, INSS bases and commitment shares.
MAX_AMOUNT = Decimal("1e15")


def parse_decimal(value: object) -> Decimal:
    """Parse a number typed by an operator or returned by the extractor.

    Accepts ints, floats, Decimals and strings in either "1234.56" or the
    Brazilian "1.234,56" notation. Raises InvalidInputError otherwise.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidInputError(f"Valor numerico invalido: '{value}'")
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, int | float):
        d = Decimal(str(value))
    else:
        text = str(value).strip().replace("R$", "").replace("%", "").strip()
        if "," in text:
            text = text.replace(".", "").replace(",", ".")
        try:
            d = Decimal(text)
        except InvalidOperation:
            raise InvalidInputError(f"Valor numerico invalido: '{value}'") from None
    if not d.is_finite():
        raise InvalidInputError(f"Valor numerico invalido: '{value}'")
    return d


def validate_gross_amount(value: object) -> Decimal:
    """Validate the invoice gross amount: present, numeric, non-negative, at most MAX_AMOUNT."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidInputError("Valor Bruto ausente no documento")
    d = parse_decimal(value)
    if d < 0:
        raise InvalidInputError(f"Valor Bruto nao pode ser negativo: '{value}'")
    if d > MAX_AMOUNT:
        raise InvalidInputError(f"Valor Bruto acima do limite aceito: '{value}'")
    return d


def validate_monetary(value: object) -> Decimal:
    """Validate a non-negative monetary amount (INSS base, commitment share)."""
    d = parse_decimal(value)
    if d < 0:
        raise InvalidInputError(f"Valor nao pode ser negativo: '{value}'")
    if d > MAX_AMOUNT:
        raise InvalidInputError(f"Valor acima do limite aceito: '{value}'")
    return d


def validate_percent(value: object) -> Decimal:
    """Validate a percentage value (0.00-100.00)."""
    d = parse_decimal(value)
    if d < 0 or d > 100:
        raise InvalidInputError("Percentual deve estar entre 0.00 e 100.00")
    return d


def validate_codigo_reinf(value: str) -> str:
    """Validate a REINF natureza de rendimento code: exactly 5 digits."""
    value = value.strip()
    if not re.fullmatch(r"\d{5}", value):
        raise InvalidInputError("Codigo REINF: deve ter 5 digitos numericos")
    return value


def parse_sim_nao(value: object) -> bool:
    """Interpret the extractor's "SIM"/"NÃO" flags (and plain booleans)."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().upper() in ("SIM", "S", "TRUE", "1")
