"""Append-only durable history of report records."""

import json
import logging
import os
import tempfile
from collections.abc import Sequence
from typing import TypeAlias
from dataclasses import dataclass
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from collection_runner.models.report import ReportRecord

log = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 100

History: TypeAlias = Sequence[ReportRecord]

_history_adapter: TypeAdapter[list[ReportRecord]] = TypeAdapter(list[ReportRecord])


class StoreCorruptError(Exception):
    """Raised when the persisted history cannot be parsed."""


def serialize_history(history: History) -> str:
    """Render records as the JSON array persisted by the store."""
    return json.dumps(
        _history_adapter.dump_python(list(history), mode="json", by_alias=True),
        indent=2,
    )


@dataclass(frozen=True, kw_only=True)
class HistoryStore:
    """JSON file holding report records, oldest first, capped in length.

    A single writer per file is assumed, no locking is performed.
    """

    path: Path
    max_entries: int = DEFAULT_MAX_ENTRIES

    def __post_init__(self) -> None:
        if self.max_entries < 1:
            raise ValueError("max_entries must be at least 1")

    def initialize(self) -> None:
        """Create the store as an empty array when it does not exist."""
        if self.path.exists():
            return
        self._write([])
        log.info("Initialized history file: %s", self.path)

    def load(self) -> History:
        """Read all persisted records, oldest first.

        Returns:
            The persisted records, or an empty sequence if no store exists

        Raises:
            StoreCorruptError: If the file is not a JSON array of records

        """
        try:
            content = self.path.read_bytes()
        except FileNotFoundError:
            return ()

        try:
            return tuple(_history_adapter.validate_json(content))
        except ValidationError as exc:
            raise StoreCorruptError(
                f"History file {self.path} is not a valid list of records: "
                f"{exc.error_count()} error(s)"
            ) from exc

    def append(self, record: ReportRecord) -> History:
        """Add a record as the newest entry and evict beyond the cap.

        Returns:
            The history as persisted after the append

        """
        history = (*self.load(), record)[-self.max_entries :]
        self._write(history)
        return history

    def trim(self, max_entries: int | None = None) -> bool:
        """Drop the oldest entries beyond ``max_entries``.

        Returns:
            True if entries were dropped, False if the store was within the cap

        """
        limit = self.max_entries if max_entries is None else max_entries
        if limit < 1:
            raise ValueError("max_entries must be at least 1")

        history = self.load()
        if len(history) <= limit:
            return False

        self._write(history[-limit:])
        log.info(
            "Trimmed history from %d to %d entries", len(history), limit
        )
        return True

    def reset(self) -> None:
        """Replace the store with an empty history."""
        self._write([])

    def _write(self, history: History) -> None:
        """Rewrite the whole store atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = serialize_history(history)

        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as stream:
                stream.write(payload)
                stream.flush()
                os.fsync(stream.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
