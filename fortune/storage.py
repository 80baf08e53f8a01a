"""
Persistence of the single most recent result.

A repository holds at most one StoredResult. Saving overwrites it;
clearing removes it. Repositories are passed in explicitly, so tests use
InMemoryRepository and the CLI uses JsonFileRepository.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Protocol
from uuid import uuid4

from fortune import __version__
from fortune.errors import ResultIntegrityError

logger = logging.getLogger(__name__)

RECORD_VERSION = __version__


def integrity_hash(snapshot: dict[str, Any]) -> str:
    """SHA-256 over the canonical JSON form of a snapshot."""
    canonical = json.dumps(snapshot, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class StoredResult:
    token: str
    snapshot: dict[str, Any]  # chart_profile, user_context, report
    integrity_hash: str
    timestamp: int  # epoch milliseconds
    version: str = RECORD_VERSION

    @classmethod
    def create(cls, chart_profile: dict, user_context: dict, report: dict,
               timestamp: Optional[int] = None) -> "StoredResult":
        snapshot = {
            "chart_profile": chart_profile,
            "user_context": user_context,
            "report": report,
        }
        return cls(
            token=f"token_{uuid4().hex}",
            snapshot=snapshot,
            integrity_hash=integrity_hash(snapshot),
            timestamp=timestamp if timestamp is not None else int(time.time() * 1000),
        )

    def verify(self) -> None:
        if integrity_hash(self.snapshot) != self.integrity_hash:
            raise ResultIntegrityError(f"Stored result {self.token} failed its integrity check")

    def to_dict(self) -> dict[str, Any]:
        return {
            "token": self.token,
            "snapshot": self.snapshot,
            "integrity_hash": self.integrity_hash,
            "timestamp": self.timestamp,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StoredResult":
        try:
            return cls(
                token=data["token"],
                snapshot=data["snapshot"],
                integrity_hash=data["integrity_hash"],
                timestamp=int(data["timestamp"]),
                version=data.get("version", RECORD_VERSION),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ResultIntegrityError(f"Stored result is malformed: {exc}") from exc


class ResultRepository(Protocol):
    def save(self, record: StoredResult) -> None: ...

    def load(self) -> Optional[StoredResult]: ...

    def clear(self) -> None: ...


class InMemoryRepository:
    """Keeps the record in process memory."""

    def __init__(self) -> None:
        self._record: Optional[StoredResult] = None

    def save(self, record: StoredResult) -> None:
        self._record = record

    def load(self) -> Optional[StoredResult]:
        if self._record is not None:
            self._record.verify()
        return self._record

    def clear(self) -> None:
        self._record = None


class JsonFileRepository:
    """Keeps the record as one JSON file; not safe for concurrent writers."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def save(self, record: StoredResult) -> None:
        """Write the record beside the target, then swap it into place."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=self.path.parent,
                                         prefix=f".{self.path.name}.", suffix=".tmp",
                                         delete=False) as f:
            tmp_path = Path(f.name)
            try:
                json.dump(record.to_dict(), f, indent=2, ensure_ascii=False)
            except BaseException:
                f.close()
                tmp_path.unlink(missing_ok=True)
                raise
        os.replace(tmp_path, self.path)
        logger.info("Saved result %s to %s", record.token, self.path)

    def load(self) -> Optional[StoredResult]:
        """
        Return the stored record, or None when nothing is stored.

        Raises:
            ResultIntegrityError: the file is not valid JSON, lacks fields,
                or its snapshot no longer matches the hash
        """
        if not self.path.exists():
            return None
        with open(self.path, encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as exc:
                raise ResultIntegrityError(f"{self.path} is not valid JSON") from exc
        record = StoredResult.from_dict(data)
        record.verify()
        return record

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logger.info("Cleared stored result at %s", self.path)
