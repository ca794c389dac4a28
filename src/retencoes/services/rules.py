"""Withholding rules for payments made by the municipality.

Every branch resolves to a value plus an optional observation; nothing here
raises. Amounts are rounded to cents only after the de minimis test, which
looks at the raw product.
"""

from __future__ import annotations

import unicodedata
from decimal import ROUND_HALF_UP, Decimal, localcontext

from retencoes.models.facts import DocumentoTipo, InvoiceFacts
from retencoes.models.record import WithholdingLine, WithholdingResult
from retencoes.models.settings import DEFAULT_SETTINGS, RuleSettings

ZERO = Decimal("0")
CENT = Decimal("0.01")
CSRF_RATE = Decimal("4.65")
DE_MINIMIS = Decimal("10.00")


def round2(value: Decimal) -> Decimal:
    with localcontext() as ctx:
        # room for every integer digit plus the two cents
        ctx.prec = max(ctx.prec, value.adjusted() + 3)
        return value.quantize(CENT, rounding=ROUND_HALF_UP)


def normalize_municipio(name: str) -> str:
    """Casefold and strip diacritics (NFD, combining marks removed)."""
    decomposed = unicodedata.normalize("NFD", name.casefold())
    return "".join(c for c in decomposed if not unicodedata.combining(c)).strip()


def _percent_of(amount: Decimal, rate: Decimal) -> Decimal:
    return amount * rate / 100


def _federal_line(
    facts: InvoiceFacts, rate: Decimal, tax: str, is_exempt: bool
) -> WithholdingLine:
    """IRRF and CSRF share the exemption and R$ 10,00 de minimis rules."""
    if is_exempt:
        return WithholdingLine(
            rate=rate,
            value=ZERO,
            observacao=f"{tax} não retido. Fornecedor é Optante pelo Simples Nacional ou MEI.",
        )
    raw = _percent_of(facts.valor_bruto, rate)
    if ZERO < raw < DE_MINIMIS:
        return WithholdingLine(
            rate=rate,
            value=ZERO,
            observacao=f"Dispensa de retenção. Valor do {tax} inferior a R$ 10,00.",
        )
    return WithholdingLine(rate=rate, value=round2(raw))


def _iss_line(facts: InvoiceFacts, settings: RuleSettings) -> tuple[WithholdingLine, str]:
    """Return the ISS line and the (possibly forced) incidence municipality."""
    rate = facts.aliquota_iss
    sede = settings.municipio_sede
    municipio = facts.municipio_incidencia

    if facts.documento_tipo is DocumentoTipo.PRODUTO:
        municipio = sede

    if facts.is_mei:
        line = WithholdingLine(
            rate=rate,
            value=ZERO,
            observacao="ISS não retido. Fornecedor é MEI.",
        )
        return line, municipio

    if facts.documento_tipo is DocumentoTipo.PRODUTO:
        line = WithholdingLine(
            rate=rate,
            value=ZERO,
            observacao="Operação de venda (DANFE/Produto). Sem retenção de ISS.",
        )
        return line, municipio

    if normalize_municipio(sede) in normalize_municipio(municipio):
        if facts.optante_simples:
            obs = "ISS retido conforme legislação municipal para Optantes do Simples."
        else:
            obs = f"ISS retido normalmente em {sede}."
        line = WithholdingLine(
            rate=rate,
            value=round2(_percent_of(facts.valor_bruto, rate)),
            observacao=obs,
        )
        return line, municipio

    local = municipio or "local não informado"
    line = WithholdingLine(
        rate=rate,
        value=ZERO,
        observacao=f"ISS devido em {local}, não retido na fonte por {sede}.",
    )
    return line, municipio


def _inss_line(facts: InvoiceFacts) -> WithholdingLine:
    if facts.is_mei:
        # MEI exemption cannot be overridden by a typed base, rate or amount
        return WithholdingLine(
            rate=ZERO,
            value=ZERO,
            observacao="INSS não retido. Fornecedor é MEI.",
            base=ZERO,
        )
    base = facts.base_calculo_inss or ZERO
    rate = facts.aliquota_inss or ZERO
    if base > 0 and rate > 0:
        value = round2(_percent_of(base, rate))
    else:
        value = facts.valor_inss or ZERO
    return WithholdingLine(rate=rate, value=value, base=base)


def compute_withholdings(
    facts: InvoiceFacts, settings: RuleSettings = DEFAULT_SETTINGS
) -> WithholdingResult:
    """Map invoice facts to the amounts withheld at source.

    Pure and deterministic: identical facts and settings give an identical
    result. The caller must have validated ``valor_bruto`` already.
    """
    is_exempt = facts.is_mei or facts.optante_simples

    irrf = _federal_line(facts, facts.aliquota_ir, "IR", is_exempt)
    csrf = _federal_line(facts, CSRF_RATE, "CSRF", is_exempt) if settings.csrf_habilitada else None
    iss, municipio = _iss_line(facts, settings)
    inss = _inss_line(facts)

    valor_liquido = facts.valor_bruto - irrf.value - iss.value - inss.value
    if csrf is not None:
        valor_liquido -= csrf.value

    return WithholdingResult(
        irrf=irrf,
        iss=iss,
        inss=inss,
        csrf=csrf,
        valor_liquido=valor_liquido,
        municipio_incidencia=municipio,
    )
