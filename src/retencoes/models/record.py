from __future__ import annotations

import json
import time
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Any

from retencoes.config import BRT
from retencoes.models.facts import InvoiceFacts


@dataclass(frozen=True)
class WithholdingLine:
    """One tax kind's withholding: rate (%), value (R$) and an optional note."""

    rate: Decimal
    value: Decimal
    observacao: str | None = None
    base: Decimal | None = None  # INSS only

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"rate": str(self.rate), "value": str(self.value)}
        if self.observacao:
            d["observacao"] = self.observacao
        if self.base is not None:
            d["base"] = str(self.base)
        return d

    @classmethod
    def from_dict(cls, d: dict) -> WithholdingLine:
        base = d.get("base")
        return cls(
            rate=Decimal(d["rate"]),
            value=Decimal(d["value"]),
            observacao=d.get("observacao"),
            base=Decimal(base) if base is not None else None,
        )


@dataclass(frozen=True)
class WithholdingResult:
    irrf: WithholdingLine
    iss: WithholdingLine
    inss: WithholdingLine
    valor_liquido: Decimal
    municipio_incidencia: str
    csrf: WithholdingLine | None = None

    def lines(self) -> dict[str, WithholdingLine]:
        """Present lines keyed by tax kind, in display order."""
        lines = {"irrf": self.irrf}
        if self.csrf is not None:
            lines["csrf"] = self.csrf
        lines["iss"] = self.iss
        lines["inss"] = self.inss
        return lines

    @property
    def total_retido(self) -> Decimal:
        return sum((line.value for line in self.lines().values()), Decimal("0"))

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {k: line.to_dict() for k, line in self.lines().items()}
        d["valor_liquido"] = str(self.valor_liquido)
        d["municipio_incidencia"] = self.municipio_incidencia
        return d

    @classmethod
    def from_dict(cls, d: dict) -> WithholdingResult:
        csrf = d.get("csrf")
        return cls(
            irrf=WithholdingLine.from_dict(d["irrf"]),
            iss=WithholdingLine.from_dict(d["iss"]),
            inss=WithholdingLine.from_dict(d["inss"]),
            valor_liquido=Decimal(d["valor_liquido"]),
            municipio_incidencia=d["municipio_incidencia"],
            csrf=WithholdingLine.from_dict(csrf) if csrf is not None else None,
        )


_last_id = 0


def new_record_id() -> int:
    """Creation timestamp in epoch milliseconds, strictly increasing per process."""
    global _last_id
    _last_id = max(time.time_ns() // 1_000_000, _last_id + 1)
    return _last_id


@dataclass(frozen=True)
class CalculatedRecord:
    """A computed invoice: the facts snapshot, its withholdings and a stable id.

    Recalculation swaps ``facts``/``result`` but keeps ``id``.
    """

    id: int
    facts: InvoiceFacts
    result: WithholdingResult

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self.id / 1000, tz=BRT)

    @property
    def irrf(self) -> WithholdingLine:
        return self.result.irrf

    @property
    def csrf(self) -> WithholdingLine | None:
        return self.result.csrf

    @property
    def iss(self) -> WithholdingLine:
        return self.result.iss

    @property
    def inss(self) -> WithholdingLine:
        return self.result.inss

    @property
    def valor_liquido(self) -> Decimal:
        return self.result.valor_liquido

    @property
    def codigo_reinf(self) -> str:
        return self.facts.codigo_reinf

    def with_result(self, facts: InvoiceFacts, result: WithholdingResult) -> CalculatedRecord:
        """Same identity, new content."""
        return replace(self, facts=facts, result=result)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "facts": self.facts.to_dict(), "result": self.result.to_dict()}

    @classmethod
    def from_dict(cls, d: dict) -> CalculatedRecord:
        return cls(
            id=int(d["id"]),
            facts=InvoiceFacts.from_dict(d["facts"]),
            result=WithholdingResult.from_dict(d["result"]),
        )

    def to_export_dict(self) -> dict[str, Any]:
        """Field-stable projection for downstream integration.

        Key names are a public contract; do not rename them.
        """
        facts = self.facts

        def sim_nao(flag: bool) -> str:
            return "SIM" if flag else "NÃO"

        def line(item: WithholdingLine, with_base: bool = False) -> dict[str, Any]:
            d: dict[str, Any] = {"aliquota": item.rate}
            if with_base:
                d["base"] = item.base if item.base is not None else Decimal("0")
            d["valor"] = item.value
            if item.observacao:
                d["observacao"] = item.observacao
            return d

        retencoes: dict[str, Any] = {"irrf": line(self.irrf)}
        if self.csrf is not None:
            retencoes["csrf"] = line(self.csrf)
        retencoes["iss"] = line(self.iss)
        retencoes["inss"] = line(self.inss, with_base=True)

        return {
            "razaoSocial": facts.razao_social,
            "cnpj": facts.cnpj,
            "numeroNF": facts.numero_nf,
            "documentoTipo": facts.documento_tipo.value,
            "codigoReinf": facts.codigo_reinf,
            "optanteSimples": sim_nao(facts.optante_simples),
            "isMei": sim_nao(facts.is_mei),
            "localServico": facts.local_servico,
            "municipioIncidencia": self.result.municipio_incidencia,
            "valorBruto": facts.valor_bruto,
            "retencoes": retencoes,
            "valorLiquido": self.valor_liquido,
        }


def new_record(facts: InvoiceFacts, result: WithholdingResult) -> CalculatedRecord:
    """Create a record with a fresh identity."""
    return CalculatedRecord(id=new_record_id(), facts=facts, result=result)


def _json_default(value: object) -> object:
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def export_json(record: CalculatedRecord) -> str:
    """Render the structured export as JSON, amounts as JSON numbers."""
    return json.dumps(record.to_export_dict(), indent=2, ensure_ascii=False, default=_json_default)
