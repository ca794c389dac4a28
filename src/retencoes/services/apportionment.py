"""Split one invoice's withholdings across budget commitments (empenhos).

Residual-to-last: every item but the last gets its rounded proportional
share, the last gets whatever is left, so the shares of each tax kind always
add up to the original value to the cent.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from retencoes.models.record import WithholdingResult
from retencoes.models.split import CommitmentItem, SplitItem
from retencoes.services.rules import ZERO, round2


def split_withholdings(
    result: WithholdingResult, items: Sequence[CommitmentItem]
) -> list[SplitItem]:
    """Apportion every present withholding line across *items*, in order.

    The last item absorbs the rounding residual. A zero total gross share gives
    every item but the last a zero proportion.
    """
    if not items:
        return []

    originals = {kind: line.value for kind, line in result.lines().items()}
    total_gross = sum((item.gross_share for item in items), ZERO)
    running = dict.fromkeys(originals, ZERO)
    last = len(items) - 1

    split: list[SplitItem] = []
    for i, item in enumerate(items):
        shares: dict[str, Decimal] = {}
        if i == last:
            for kind, original in originals.items():
                shares[kind] = original - running[kind]
        else:
            proportion = item.gross_share / total_gross if total_gross else ZERO
            for kind, original in originals.items():
                share = round2(original * proportion)
                shares[kind] = share
                running[kind] += share

        split.append(
            SplitItem(
                label=item.label,
                gross_share=item.gross_share,
                irrf=shares["irrf"],
                iss=shares["iss"],
                inss=shares["inss"],
                csrf=shares.get("csrf"),
                valor_liquido=item.gross_share - sum(shares.values(), ZERO),
            )
        )
    return split


def residual_to_apportion(valor_bruto: Decimal, items: Sequence[CommitmentItem]) -> Decimal:
    """Gross amount not yet assigned to any commitment. Informational only."""
    return valor_bruto - sum((item.gross_share for item in items), ZERO)
