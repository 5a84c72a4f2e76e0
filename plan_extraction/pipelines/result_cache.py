from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

from jsonschema import ValidationError

from plan_extraction.models.contracts import SCHEMA_VERSION, ExtractionResult
from plan_extraction.validators.schema_validator import SchemaValidator

logger = logging.getLogger(__name__)


def hash_document(document: bytes) -> str:
    return hashlib.sha256(document).hexdigest()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResultCache:
    """File-backed result store keyed by document hash, one JSON file per entry.

    Every failure mode (unreadable file, corrupt JSON, older schema version,
    payload that no longer validates) reads as a miss. Writes that fail are
    logged and dropped.
    """

    def __init__(
        self,
        root: Path,
        ttl_days: int = 30,
        clock: Callable[[], datetime] = _utcnow,
        validator: SchemaValidator | None = None,
    ) -> None:
        self.root = root
        self.entries_dir = root / "results"
        self.ttl = timedelta(days=ttl_days)
        self.clock = clock
        self.validator = validator or SchemaValidator()

    def _path(self, file_hash: str) -> Path:
        return self.entries_dir / f"{file_hash}.json"

    def get(self, file_hash: str) -> ExtractionResult | None:
        path = self._path(file_hash)
        if not path.exists():
            logger.debug(f"Cache miss for {file_hash[:12]}")
            return None

        try:
            entry = json.loads(path.read_text(encoding="utf-8"))
            if entry.get("schema_version") != SCHEMA_VERSION:
                logger.debug(f"Cache entry {file_hash[:12]} has schema {entry.get('schema_version')}; ignoring")
                return None
            stored_at = datetime.fromisoformat(entry["stored_at"])
            if self.clock() - stored_at > self.ttl:
                logger.debug(f"Cache entry {file_hash[:12]} expired; evicting")
                self._evict(path)
                return None
            self.validator.ensure_valid(entry["result"])
            result = ExtractionResult.from_dict(entry["result"])
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"Could not read cache entry {path.name}: {exc}")
            return None
        except (KeyError, TypeError, ValueError, AttributeError, ValidationError) as exc:
            logger.warning(f"Discarding unusable cache entry {path.name}: {exc}")
            return None

        logger.debug(f"Cache hit for {file_hash[:12]}")
        return replace(result, status="cached")

    def put(self, file_hash: str, result: ExtractionResult) -> bool:
        entry = {
            "schema_version": SCHEMA_VERSION,
            "stored_at": self.clock().isoformat(),
            "result": result.to_dict(),
        }
        try:
            self.entries_dir.mkdir(parents=True, exist_ok=True)
            self._path(file_hash).write_text(json.dumps(entry, indent=2), encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            logger.warning(f"Could not write cache entry for {file_hash[:12]}: {exc}")
            return False
        return True

    def _evict(self, path: Path) -> None:
        try:
            path.unlink()
        except OSError as exc:
            logger.warning(f"Could not evict expired cache entry {path.name}: {exc}")
