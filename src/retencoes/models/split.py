from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from retencoes.utils.validators import validate_monetary


@dataclass(frozen=True)
class CommitmentItem:
    """A budget commitment (empenho) and the part of the gross amount it covers."""

    label: str
    gross_share: Decimal

    @classmethod
    def parse(cls, label: str, gross_share: object) -> CommitmentItem:
        """Build from operator input; raises InvalidInputError on a bad share."""
        return cls(label=label.strip(), gross_share=validate_monetary(gross_share))


@dataclass(frozen=True)
class SplitItem:
    label: str
    gross_share: Decimal
    irrf: Decimal
    iss: Decimal
    inss: Decimal
    valor_liquido: Decimal
    csrf: Decimal | None = None
