from __future__ import annotations

from dataclasses import dataclass

from retencoes.models.facts import CODIGO_REINF_PADRAO


@dataclass(frozen=True)
class RuleSettings:
    """Parameters of the withholding rules for the paying municipality."""

    municipio_sede: str = "Senador Canedo"
    csrf_habilitada: bool = True
    codigo_reinf_padrao: str = CODIGO_REINF_PADRAO

    @classmethod
    def from_dict(cls, d: dict | None) -> RuleSettings:
        """Create settings from retencoes.yaml, applying defaults for missing keys."""
        d = d or {}
        return cls(
            municipio_sede=str(d.get("municipio_sede", "Senador Canedo")),
            csrf_habilitada=bool(d.get("csrf_habilitada", True)),
            codigo_reinf_padrao=str(d.get("codigo_reinf_padrao", CODIGO_REINF_PADRAO)).zfill(5),
        )


DEFAULT_SETTINGS = RuleSettings()
