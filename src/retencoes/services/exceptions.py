from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from retencoes.models.record import CalculatedRecord


class InvalidInputError(ValueError):
    """Input rejected before the withholding rules run (e.g. missing gross value)."""


class ExtractionError(Exception):
    """The extraction service could not turn a document into invoice facts."""

    def __init__(self, message: str, response: dict | None = None) -> None:
        super().__init__(message)
        self.response = response or {}


class AuthenticationError(ExtractionError):
    """The extraction service rejected the configured API key."""


class BatchAbortedError(Exception):
    """A batch stopped at the first document that failed.

    ``committed`` holds the records saved before the failure; ``cause`` is the
    original error (also chained as ``__cause__``).
    """

    def __init__(
        self,
        document: str,
        index: int,
        total: int,
        cause: Exception,
        committed: list[CalculatedRecord] | None = None,
    ) -> None:
        super().__init__(f"Documento {index} de {total} ({document}): {cause}")
        self.document = document
        self.index = index
        self.total = total
        self.cause = cause
        self.committed = committed or []

    @property
    def is_authentication(self) -> bool:
        return isinstance(self.cause, AuthenticationError)
