from __future__ import annotations

import hashlib
import json
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .errors import StoreError
from .git import normalize_url

logger = logging.getLogger(__name__)


def compute_signature(entries: dict[str, Any]) -> str:
    canonical = json.dumps(entries, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(canonical).hexdigest()


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class StoreConfig:
    clone_dir: str


@dataclass
class StoreDocument:
    entries: dict[str, dict[str, Any]]
    version: int = 1
    generated_at: str = field(default_factory=_now)
    signature: str = ""

    def ensure_signature(self) -> None:
        self.signature = compute_signature(self.entries)


def load_store_document(path: Path) -> StoreDocument:
    if not path.exists():
        return StoreDocument(entries={})
    try:
        raw: Any = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Failed to read repository store %s: %s", path, exc)
        return StoreDocument(entries={})
    if not isinstance(raw, dict):
        return StoreDocument(entries={})
    entries: dict[str, dict[str, Any]] = {}
    entries_raw = raw.get("entries")
    if isinstance(entries_raw, dict):
        for key, payload in entries_raw.items():
            if isinstance(payload, dict):
                entries[str(key)] = {str(k): v for k, v in payload.items()}
    doc = StoreDocument(
        entries=entries,
        version=int(raw.get("version") or 1),
        generated_at=str(raw.get("generated_at") or _now()),
        signature=str(raw.get("signature") or ""),
    )
    if doc.signature and doc.signature != compute_signature(doc.entries):
        logger.warning("Store signature mismatch detected at %s; ignoring entries", path)
        return StoreDocument(entries={}, version=doc.version)
    return doc


def persist_store_document(path: Path, document: StoreDocument) -> None:
    document.ensure_signature()
    document.generated_at = _now()
    payload = {
        "version": document.version,
        "generated_at": document.generated_at,
        "entries": document.entries,
        "signature": document.signature,
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    tmp.replace(path)


def repo_key(url: str) -> str:
    """Store key for a clone URL: its normalized form."""
    if not url or not url.strip():
        raise StoreError("invalid URL: empty")
    return normalize_url(url)


class RepoStore:
    """JSON-backed record of mirrored repositories.

    Paths are passed in explicitly; nothing touches disk until the first
    write. All methods are safe to call from several worker threads.
    """

    def __init__(self, path: str | Path, clone_dir: str | Path) -> None:
        self.path = Path(path).expanduser()
        self.clone_dir = str(Path(clone_dir).expanduser())
        self._lock = threading.Lock()
        self._doc: StoreDocument | None = None

    def _document(self) -> StoreDocument:
        if self._doc is None:
            self._doc = load_store_document(self.path)
        return self._doc

    def get_config(self) -> StoreConfig:
        return StoreConfig(clone_dir=self.clone_dir)

    def get(self, url: str) -> dict[str, Any] | None:
        with self._lock:
            entry = self._document().entries.get(repo_key(url))
            return dict(entry) if entry else None

    def entries(self) -> dict[str, dict[str, Any]]:
        with self._lock:
            return {k: dict(v) for k, v in self._document().entries.items()}

    def save_mirrored_repo(self, url: str, path: str | Path) -> None:
        """Insert the repository, or refresh its timestamp if already known."""
        key = repo_key(url)
        with self._lock:
            doc = self._document()
            stamp = _now()
            existing = doc.entries.get(key)
            if existing is None:
                doc.entries[key] = {
                    "url": url,
                    "path": str(path),
                    "added_at": stamp,
                    "last_mirrored_at": stamp,
                }
            else:
                existing["last_mirrored_at"] = stamp
                existing["path"] = str(path)
            persist_store_document(self.path, doc)

    def update_repo_timestamp(self, url: str) -> None:
        key = repo_key(url)
        with self._lock:
            doc = self._document()
            entry = doc.entries.get(key)
            if entry is None:
                raise StoreError(f"repository not found in store: {url}")
            entry["last_mirrored_at"] = _now()
            persist_store_document(self.path, doc)


__all__ = [
    "RepoStore",
    "StoreConfig",
    "StoreDocument",
    "compute_signature",
    "load_store_document",
    "persist_store_document",
    "repo_key",
]
