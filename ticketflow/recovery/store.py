"""
Durable record that survives a full restart caused by a payment redirect.

Stored as a small JSON document on disk, one entry under a fixed key.
Writes are best-effort: ``save_best_effort`` never raises, so a storage
failure can never block the redirect navigation that follows it.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError as SchemaValidationError

from ticketflow.config import settings
from ticketflow.schemas.payment_schema import RecoveryRecord

logger = logging.getLogger(__name__)


class RecoveryStore:
    """Single-record JSON store keyed by a fixed name."""

    def __init__(
        self, path: Union[str, Path, None] = None, key: Optional[str] = None
    ) -> None:
        self._path = Path(path or settings.recovery.path)
        self._key = key or settings.recovery.key

    @property
    def path(self) -> Path:
        return self._path

    def _read_document(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            document = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Recovery store at %s is unreadable: %s", self._path, exc)
            return {}
        return document if isinstance(document, dict) else {}

    def save_best_effort(self, record: RecoveryRecord) -> bool:
        """Overwrite the stored record. Returns False instead of raising on failure."""
        try:
            document = self._read_document()
            document[self._key] = record.to_json_dict()
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(document), encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            logger.warning(
                "Could not persist recovery record for booking %s: %s",
                record.booking_reference, exc,
            )
            return False
        logger.info("Recovery record saved for booking %s", record.booking_reference)
        return True

    def load(self) -> Optional[RecoveryRecord]:
        raw = self._read_document().get(self._key)
        if raw is None:
            return None
        try:
            return RecoveryRecord.model_validate(raw)
        except SchemaValidationError as exc:
            logger.warning("Discarding malformed recovery record: %s", exc)
            return None

    def clear(self) -> None:
        document = self._read_document()
        if self._key not in document:
            return
        del document[self._key]
        try:
            self._path.write_text(json.dumps(document), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not clear recovery record: %s", exc)

    def consume(self) -> Optional[RecoveryRecord]:
        """Read the record once on resumption, then remove it."""
        record = self.load()
        if record is not None:
            self.clear()
        return record
