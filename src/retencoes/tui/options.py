"""Shared Select option constants for the withholding form fields.

IRRF rates follow IN RFB 1.234/2012. Labels read "rate, then description".
"""

from __future__ import annotations

from retencoes.config import load_naturezas

IRRF_OPTIONS: tuple[tuple[str, str], ...] = (
    ("0,00% — Isento/Simples", "0.00"),
    ("1,20% — Serviços em geral", "1.20"),
    ("2,40% — Transporte de passageiros e outros", "2.40"),
    ("4,80% — Serviços profissionais", "4.80"),
    ("0,24% — Combustíveis", "0.24"),
)

DOCUMENTO_TIPO_OPTIONS: tuple[tuple[str, str], ...] = (
    ("Serviço", "SERVICO"),
    ("Produto (DANFE)", "PRODUTO"),
    ("Indefinido", "INDEFINIDO"),
)


def irrf_options_for(rate: str) -> list[tuple[str, str]]:
    """IRRF options including *rate* when it is not one of the standard ones."""
    options = list(IRRF_OPTIONS)
    if rate not in {value for _, value in options}:
        options.append((f"{rate.replace('.', ',')}% — Informada no documento", rate))
    return options


def natureza_options(current: str | None = None) -> list[tuple[str, str]]:
    """REINF natureza de rendimento codes as Select options.

    A *current* code missing from the catalog is kept as an extra option.
    """
    options = [(f"{code} — {desc}", code) for code, desc in load_naturezas()]
    if current and current not in {code for _, code in options}:
        options.append((f"{current} — Código do documento", current))
    return options
