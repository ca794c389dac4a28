from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Protocol

from retencoes.models.facts import InvoiceFacts
from retencoes.models.record import CalculatedRecord, new_record
from retencoes.models.settings import DEFAULT_SETTINGS, RuleSettings
from retencoes.services.exceptions import BatchAbortedError, ExtractionError, InvalidInputError
from retencoes.services.extraction import SourceDocument
from retencoes.services.rules import compute_withholdings
from retencoes.utils.history import add_record

logger = logging.getLogger(__name__)


class Extractor(Protocol):
    async def extract(self, document: SourceDocument) -> dict: ...


ProgressCallback = Callable[[int, int], object]


def build_record(raw: dict, settings: RuleSettings = DEFAULT_SETTINGS) -> CalculatedRecord:
    """Validate raw extracted fields and compute a fresh record.

    Raises InvalidInputError when the gross value is missing or invalid.
    """
    facts = InvoiceFacts.from_extracted(raw, settings.codigo_reinf_padrao)
    return new_record(facts, compute_withholdings(facts, settings))


class BatchPipeline:
    """Process documents one after another, stopping at the first failure.

    Each document is extracted, validated and computed before the next one is
    requested. Successful records are committed on a worker thread as they
    complete; a failure (including a failed commit) raises BatchAbortedError
    naming the document, and nothing after it runs.
    """

    def __init__(
        self,
        extractor: Extractor,
        *,
        commit: Callable[[CalculatedRecord], object] = add_record,
        settings: RuleSettings = DEFAULT_SETTINGS,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self._extractor = extractor
        self._commit = commit
        self._settings = settings
        self._on_progress = on_progress

    async def run(self, documents: Sequence[SourceDocument]) -> list[CalculatedRecord]:
        """Return the committed records in processing order; the last is the active one."""
        total = len(documents)
        committed: list[CalculatedRecord] = []
        for index, document in enumerate(documents, start=1):
            if self._on_progress is not None:
                self._on_progress(index, total)
            logger.info("Processando documento %d de %d: %s", index, total, document.name)
            try:
                raw = await self._extractor.extract(document)
                record = build_record(raw, self._settings)
            except (ExtractionError, InvalidInputError) as exc:
                logger.warning("Lote interrompido em %s: %s", document.name, exc)
                raise BatchAbortedError(
                    document.name, index, total, exc, committed=list(committed)
                ) from exc
            try:
                await asyncio.to_thread(self._commit, record)
            except OSError as exc:
                logger.warning("Falha ao salvar %s no historico: %s", document.name, exc)
                raise BatchAbortedError(
                    document.name, index, total, exc, committed=list(committed)
                ) from exc
            committed.append(record)
        return committed
