from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from retencoes.utils.validators import (
    parse_decimal,
    parse_sim_nao,
    validate_gross_amount,
)

CODIGO_REINF_PADRAO = "17099"  # Demais serviços
NAO_ENCONTRADO = "Não encontrado"


class DocumentoTipo(str, Enum):
    SERVICO = "SERVICO"
    PRODUTO = "PRODUTO"
    INDEFINIDO = "INDEFINIDO"

    @classmethod
    def parse(cls, value: object) -> DocumentoTipo:
        """Case-insensitive lookup; anything unrecognized is INDEFINIDO."""
        text = str(value or "").strip().upper()
        try:
            return cls(text)
        except ValueError:
            return cls.INDEFINIDO


def _optional_decimal(value: object) -> Decimal | None:
    """Numbers the extractor may omit: None/"" stay None, zero is kept."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_decimal(value)


def _text(value: object, default: str) -> str:
    text = str(value).strip() if value is not None else ""
    return text or default


@dataclass(frozen=True)
class InvoiceFacts:
    """Facts about one supplier invoice, as extracted or typed by the operator.

    Immutable: an edit produces a new value via ``dataclasses.replace``.
    """

    razao_social: str
    cnpj: str
    numero_nf: str
    valor_bruto: Decimal
    optante_simples: bool = False
    is_mei: bool = False
    documento_tipo: DocumentoTipo = DocumentoTipo.INDEFINIDO
    municipio_incidencia: str = ""
    local_servico: str = ""
    aliquota_ir: Decimal = Decimal("0")
    aliquota_iss: Decimal = Decimal("0")
    base_calculo_inss: Decimal | None = None
    aliquota_inss: Decimal | None = None
    valor_inss: Decimal | None = None
    codigo_reinf: str = CODIGO_REINF_PADRAO

    @classmethod
    def from_extracted(cls, d: dict, codigo_reinf_padrao: str = CODIGO_REINF_PADRAO) -> InvoiceFacts:
        """Create facts from the extraction contract (camelCase keys, "SIM"/"NÃO" flags).

        Raises InvalidInputError when ``valorBruto`` is missing, non-numeric or
        negative. Other missing fields fall back to neutral defaults.
        """
        valor_bruto = validate_gross_amount(d.get("valorBruto"))
        return cls(
            razao_social=_text(d.get("razaoSocial"), NAO_ENCONTRADO),
            cnpj=_text(d.get("cnpj"), NAO_ENCONTRADO),
            numero_nf=_text(d.get("numeroNF"), NAO_ENCONTRADO),
            valor_bruto=valor_bruto,
            optante_simples=parse_sim_nao(d.get("optanteSimples")),
            is_mei=parse_sim_nao(d.get("isMei")),
            documento_tipo=DocumentoTipo.parse(d.get("documentoTipo")),
            municipio_incidencia=_text(d.get("municipioIncidencia"), NAO_ENCONTRADO),
            local_servico=_text(d.get("localServico"), NAO_ENCONTRADO),
            aliquota_ir=_optional_decimal(d.get("aliquotaIR")) or Decimal("0"),
            aliquota_iss=_optional_decimal(d.get("aliquotaISS")) or Decimal("0"),
            base_calculo_inss=_optional_decimal(d.get("baseCalculoINSS")),
            aliquota_inss=_optional_decimal(d.get("aliquotaINSS")),
            valor_inss=_optional_decimal(d.get("valorINSS")),
            codigo_reinf=_text(d.get("codigoReinf"), codigo_reinf_padrao),
        )

    def to_dict(self) -> dict:
        """Serialize for the session history (Decimals as strings)."""

        def dec(v: Decimal | None) -> str | None:
            return None if v is None else str(v)

        return {
            "razao_social": self.razao_social,
            "cnpj": self.cnpj,
            "numero_nf": self.numero_nf,
            "valor_bruto": str(self.valor_bruto),
            "optante_simples": self.optante_simples,
            "is_mei": self.is_mei,
            "documento_tipo": self.documento_tipo.value,
            "municipio_incidencia": self.municipio_incidencia,
            "local_servico": self.local_servico,
            "aliquota_ir": str(self.aliquota_ir),
            "aliquota_iss": str(self.aliquota_iss),
            "base_calculo_inss": dec(self.base_calculo_inss),
            "aliquota_inss": dec(self.aliquota_inss),
            "valor_inss": dec(self.valor_inss),
            "codigo_reinf": self.codigo_reinf,
        }

    @classmethod
    def from_dict(cls, d: dict) -> InvoiceFacts:
        return cls(
            razao_social=d["razao_social"],
            cnpj=d["cnpj"],
            numero_nf=d["numero_nf"],
            valor_bruto=Decimal(d["valor_bruto"]),
            optante_simples=bool(d.get("optante_simples", False)),
            is_mei=bool(d.get("is_mei", False)),
            documento_tipo=DocumentoTipo.parse(d.get("documento_tipo")),
            municipio_incidencia=d.get("municipio_incidencia", ""),
            local_servico=d.get("local_servico", ""),
            aliquota_ir=Decimal(d.get("aliquota_ir", "0")),
            aliquota_iss=Decimal(d.get("aliquota_iss", "0")),
            base_calculo_inss=_optional_decimal(d.get("base_calculo_inss")),
            aliquota_inss=_optional_decimal(d.get("aliquota_inss")),
            valor_inss=_optional_decimal(d.get("valor_inss")),
            codigo_reinf=d.get("codigo_reinf", CODIGO_REINF_PADRAO),
        )
