"""Session history of calculated records.

A small JSON file in the data dir, newest first, capped at MAX_HISTORY.
Recalculations never touch it; only creation and batch commits append.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from filelock import FileLock

from retencoes import config as _config
from retencoes.models.record import CalculatedRecord

logger = logging.getLogger(__name__)


def _history_path() -> Path:
    return _config.get_data_dir() / "history.json"


def _backup_corrupt(path: Path) -> Path:
    """Rename a corrupt file to a timestamped backup before it gets overwritten."""
    ts = datetime.now(UTC).strftime("%Y%m%dT%H%M%S")
    backup = path.with_name(f"{path.name}.corrupt.{ts}")
    path.rename(backup)
    logger.warning("Corrupt file backed up: %s → %s", path, backup)
    return backup


@contextmanager
def _locked() -> Iterator[None]:
    """Hold an exclusive file lock during history read-modify-write."""
    hp = _history_path()
    hp.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(hp.with_suffix(".lock"))
    with lock:
        yield


def _load() -> list[dict[str, Any]]:
    hp = _history_path()
    if not hp.exists():
        return []
    try:
        entries = json.loads(hp.read_text(encoding="utf-8"))
        if not isinstance(entries, list):
            raise ValueError("history is not a list")
        return entries
    except (json.JSONDecodeError, ValueError):
        _backup_corrupt(hp)
        return []


def _save(entries: list[dict[str, Any]]) -> None:
    hp = _history_path()
    hp.parent.mkdir(parents=True, exist_ok=True)
    tmp = hp.with_suffix(".tmp")
    tmp.write_text(json.dumps(entries, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    os.replace(tmp, hp)


def _decode(entries: list[dict[str, Any]]) -> list[CalculatedRecord]:
    records: list[CalculatedRecord] = []
    for entry in entries:
        try:
            records.append(CalculatedRecord.from_dict(entry))
        except (KeyError, TypeError, ArithmeticError, ValueError) as exc:
            logger.warning("Skipping unreadable history entry: %s", exc)
    return records


def list_history() -> list[CalculatedRecord]:
    """Return the session's records, newest first."""
    with _locked():
        entries = _load()
    return _decode(entries)


def add_record(record: CalculatedRecord) -> CalculatedRecord:
    """Prepend *record*, dropping the oldest entries beyond MAX_HISTORY.

    A record already present (same id) is moved to the top instead of duplicated.
    """
    with _locked():
        entries = [e for e in _load() if e.get("id") != record.id]
        entries.insert(0, record.to_dict())
        _save(entries[: _config.MAX_HISTORY])
    logger.debug("History: added record %s", record.id)
    return record


def find_record(record_id: int) -> CalculatedRecord | None:
    for record in list_history():
        if record.id == record_id:
            return record
    return None


def clear_history() -> None:
    with _locked():
        _save([])


def start_session() -> None:
    """Begin a new session: history does not outlive the previous one."""
    clear_history()
    logger.info("New session started, history cleared")
