from __future__ import annotations

import re
from decimal import Decimal


def format_brl(value: Decimal | str) -> str:
    """Format a numeric value as R$ X.XXX,XX."""
    d = Decimal(value)
    formatted = f"{d:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"R$ {formatted}"


def format_percent(value: Decimal | str) -> str:
    """Format a percentage as 1,20%."""
    d = Decimal(value)
    return f"{d:.2f}%".replace(".", ",")


def format_cnpj(value: str) -> str:
    """Format a 14-digit CNPJ as XX.XXX.XXX/XXXX-XX; other inputs pass through."""
    digits = re.sub(r"\D", "", value)
    if len(digits) != 14:
        return value
    return f"{digits[:2]}.{digits[2:5]}.{digits[5:8]}/{digits[8:12]}-{digits[12:]}"
