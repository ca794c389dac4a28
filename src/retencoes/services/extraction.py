from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import mimetypes
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from retencoes.services.exceptions import ExtractionError
from retencoes.services.gemini_client import extract_invoice_data
from retencoes.services.nfse_xml import parse_nfse_xml

logger = logging.getLogger(__name__)

XML_TYPES = frozenset({"application/xml", "text/xml"})
GEMINI_TYPES = frozenset({"application/pdf", "image/png", "image/jpeg", "image/webp"})


@dataclass(frozen=True)
class SourceDocument:
    """An uploaded invoice: display name, MIME type and raw bytes."""

    name: str
    mime_type: str
    payload: bytes

    @property
    def is_xml(self) -> bool:
        return self.mime_type in XML_TYPES

    @classmethod
    def from_data_url(cls, name: str, data_url: str) -> SourceDocument:
        """Decode a ``data:<mime>;base64,<data>`` URL."""
        header, sep, data = data_url.partition(";base64,")
        if not sep or not header.startswith("data:") or not data:
            raise ExtractionError("URL de dados base64 invalida.")
        try:
            payload = base64.b64decode(data, validate=True)
        except binascii.Error as exc:
            raise ExtractionError("URL de dados base64 invalida.") from exc
        return cls(name=name, mime_type=header[len("data:") :], payload=payload)


def load_document(path: Path | str) -> SourceDocument:
    """Read a document from disk, guessing its MIME type from the extension."""
    path = Path(path)
    mime_type, _ = mimetypes.guess_type(path.name)
    if mime_type is None:
        raise ExtractionError(f"Tipo de arquivo nao reconhecido: {path.name}")
    try:
        payload = path.read_bytes()
    except OSError as exc:
        raise ExtractionError(f"Nao foi possivel ler {path.name}: {exc}") from exc
    return SourceDocument(name=path.name, mime_type=mime_type, payload=payload)


class DocumentExtractor:
    """Turns a SourceDocument into the raw extraction dict.

    NFS-e XML is parsed locally; PDFs and images go to Gemini on a worker
    thread so the event loop stays free while the request is in flight.
    """

    def __init__(
        self,
        remote: Callable[[bytes, str], dict] = extract_invoice_data,
        xml_parser: Callable[[bytes], dict] = parse_nfse_xml,
    ) -> None:
        self._remote = remote
        self._xml_parser = xml_parser

    async def extract(self, document: SourceDocument) -> dict:
        if document.is_xml:
            logger.debug("Parsing %s as NFS-e XML", document.name)
            return self._xml_parser(document.payload)
        if document.mime_type not in GEMINI_TYPES:
            raise ExtractionError(
                f"Formato nao suportado: {document.mime_type} ({document.name})"
            )
        logger.debug("Sending %s (%s) to Gemini", document.name, document.mime_type)
        return await asyncio.to_thread(self._remote, document.payload, document.mime_type)
