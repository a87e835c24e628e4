"""Immutable in-memory catalog of phone records.

The snapshot is loaded once at startup from a pre-validated JSON file into
CatalogEntry objects. After construction the store is never mutated, so it is
safe to read from concurrent requests without locking.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from .errors import CatalogUnavailableError
from .models import CatalogEntry
from .utils import normalize_key

logger = logging.getLogger("phonepixie.catalog")


@dataclass(frozen=True)
class CatalogMeta:
    """Metadata describing the snapshot file version for logging."""
    file_name: str
    updated_at: str
    sha256: str
    count: int


def load_catalog(path: Path) -> Tuple[List[CatalogEntry], CatalogMeta]:
    """Purpose: Read and parse the catalog snapshot file into CatalogEntry records.
    Inputs/Outputs: Input is a Path; returns the ordered entries and CatalogMeta.
    Side Effects / State: Reads file contents and computes hash/mtime.
    Dependencies: Uses json, hashlib, and pydantic validation of CatalogEntry.
    Failure Modes: Missing file, bad JSON, or an invalid record raise
        CatalogUnavailableError.
    If Removed: The service has no catalog to search.
    Testing Notes: Load a small temp file in both list and {"items": [...]} shapes.
    """
    # Read bytes for hashing and parse JSON into validated entries.
    try:
        raw_bytes = path.read_bytes()
        updated_at = datetime.fromtimestamp(path.stat().st_mtime).isoformat()
        data = json.loads(raw_bytes.decode("utf-8-sig"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CatalogUnavailableError(f"cannot read catalog snapshot {path}") from exc

    items: List[Dict[str, Any]]
    if isinstance(data, dict):
        items = data.get("items", [])
    elif isinstance(data, list):
        items = data
    else:
        items = []

    try:
        entries = [CatalogEntry.model_validate(item) for item in items if isinstance(item, dict)]
    except ValidationError as exc:
        raise CatalogUnavailableError(f"catalog snapshot {path.name} has an invalid record") from exc

    meta = CatalogMeta(
        file_name=path.name,
        updated_at=updated_at,
        sha256=hashlib.sha256(raw_bytes).hexdigest(),
        count=len(entries),
    )
    return entries, meta


class CatalogStore:
    """Read-only view over the catalog snapshot with a model-name index."""

    def __init__(self, entries: Sequence[CatalogEntry], meta: Optional[CatalogMeta] = None) -> None:
        """Purpose: Freeze the given entries and build the lookup index.
        Inputs/Outputs: Inputs are entries in snapshot order and optional meta.
        Side Effects / State: Keeps the first entry per model key; later duplicates are
            logged and dropped so the model stays unique.
        Dependencies: normalize_key for the index.
        Failure Modes: None.
        If Removed: Query engine and orchestrator lose their data source.
        Testing Notes: Duplicate model names collapse to the first record.
        """
        # Deduplicate by normalized model name, keeping snapshot order.
        kept: List[CatalogEntry] = []
        index: Dict[str, CatalogEntry] = {}
        for entry in entries:
            key = normalize_key(entry.model)
            if key in index:
                logger.warning("duplicate model=%s dropped from catalog", entry.model)
                continue
            index[key] = entry
            kept.append(entry)
        self._entries: Tuple[CatalogEntry, ...] = tuple(kept)
        self._index = index
        self._meta = meta

    @classmethod
    def from_path(cls, path: Path) -> "CatalogStore":
        """Load a snapshot file and log its version."""
        entries, meta = load_catalog(path)
        logger.info("catalog loaded file=%s count=%s sha256=%s", meta.file_name, meta.count, meta.sha256[:12])
        return cls(entries, meta)

    @property
    def meta(self) -> Optional[CatalogMeta]:
        return self._meta

    @property
    def available(self) -> bool:
        return True

    def all(self) -> Tuple[CatalogEntry, ...]:
        return self._entries

    def get(self, model: str) -> Optional[CatalogEntry]:
        # Exact lookup by normalized model name.
        return self._index.get(normalize_key(model))

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self._entries)


class UnavailableCatalogStore(CatalogStore):
    """Placeholder installed when the snapshot failed to load at startup."""

    def __init__(self, reason: str) -> None:
        super().__init__([])
        self._reason = reason

    @property
    def available(self) -> bool:
        return False

    def all(self) -> Tuple[CatalogEntry, ...]:
        raise CatalogUnavailableError(self._reason)

    def get(self, model: str) -> Optional[CatalogEntry]:
        raise CatalogUnavailableError(self._reason)
