from __future__ import annotations

import logging
from dataclasses import replace

from retencoes.models.facts import InvoiceFacts
from retencoes.models.record import CalculatedRecord
from retencoes.models.settings import DEFAULT_SETTINGS, RuleSettings
from retencoes.services.exceptions import InvalidInputError
from retencoes.services.rules import compute_withholdings
from retencoes.utils.validators import (
    validate_codigo_reinf,
    validate_monetary,
    validate_percent,
)

logger = logging.getLogger(__name__)

REGIME_FLAGS = frozenset({"optante_simples", "is_mei"})

# field -> validator turning operator input into the facts value
_EDITABLE = {
    "optante_simples": bool,
    "is_mei": bool,
    "codigo_reinf": validate_codigo_reinf,
    "aliquota_ir": validate_percent,
    "aliquota_iss": validate_percent,
    "base_calculo_inss": validate_monetary,
    "aliquota_inss": validate_percent,
}

EDITABLE_FIELDS = frozenset(_EDITABLE)


def facts_from_record(record: CalculatedRecord) -> InvoiceFacts:
    """Flatten the record's computed lines back into a full facts snapshot."""
    return replace(
        record.facts,
        aliquota_ir=record.irrf.rate,
        aliquota_iss=record.iss.rate,
        base_calculo_inss=record.inss.base,
        aliquota_inss=record.inss.rate,
        valor_inss=record.inss.value,
        municipio_incidencia=record.result.municipio_incidencia,
    )


def recalculate(
    record: CalculatedRecord,
    field: str,
    value: object,
    settings: RuleSettings = DEFAULT_SETTINGS,
) -> CalculatedRecord:
    """Apply exactly one field change and recompute, keeping the record id.

    Raises InvalidInputError for unknown fields or invalid values; the input
    record is never modified.
    """
    validator = _EDITABLE.get(field)
    if validator is None:
        raise InvalidInputError(f"Campo nao editavel: '{field}'")
    new_value = validator(value)  # type: ignore[operator]
    facts = replace(facts_from_record(record), **{field: new_value})
    return record.with_result(facts, compute_withholdings(facts, settings))


class RecalculationController:
    """Owns the active record and replaces it after each edit.

    Edits are synchronous: ``edit`` returns only after the replacement record
    is in place, so two recomputations never overlap.
    """

    def __init__(self, record: CalculatedRecord, settings: RuleSettings = DEFAULT_SETTINGS) -> None:
        self._active = record
        self._settings = settings

    @property
    def active(self) -> CalculatedRecord:
        return self._active

    @property
    def settings(self) -> RuleSettings:
        return self._settings

    def edit(self, field: str, value: object) -> CalculatedRecord:
        updated = recalculate(self._active, field, value, self._settings)
        logger.debug("Record %s recalculated after %s change", updated.id, field)
        self._active = updated
        return updated

    def toggle(self, flag: str) -> CalculatedRecord:
        """Flip a regime flag (optante_simples or is_mei)."""
        if flag not in REGIME_FLAGS:
            raise InvalidInputError(f"Regime desconhecido: '{flag}'")
        return self.edit(flag, not getattr(self._active.facts, flag))

    def restore(self, record: CalculatedRecord) -> CalculatedRecord:
        """Make a record from the session history the active one."""
        self._active = record
        return record
