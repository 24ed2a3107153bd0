"""
In-memory dataset store.

Imported datasets live in a bounded TTL cache keyed by session and dataset
id; a per-session content-hash index rejects re-uploads of the same file.
"""

from __future__ import annotations

import uuid
from typing import Dict, Optional

from .cache import DataCache
from .config import CACHE_MAX_SIZE, CACHE_TTL_MS
from .models import Dataset, DatasetMeta, StoredDataset

DATASETS: DataCache[StoredDataset] = DataCache(ttl=CACHE_TTL_MS, max_size=CACHE_MAX_SIZE)

# session_id -> {content_hash: dataset_id}
SESS_HASHES: Dict[str, Dict[str, str]] = {}


def _key(session_id: str, dataset_id: str) -> str:
    return f"{session_id}/{dataset_id}"


def get_session_hashes(session_id: str) -> Dict[str, str]:
    if session_id not in SESS_HASHES:
        SESS_HASHES[session_id] = {}
    return SESS_HASHES[session_id]


def find_by_hash(session_id: str, content_hash: str) -> Optional[str]:
    """Dataset id previously stored with *content_hash*, if it is still cached."""
    hashes = get_session_hashes(session_id)
    dataset_id = hashes.get(content_hash)
    if dataset_id is None:
        return None
    if not DATASETS.has(_key(session_id, dataset_id)):
        del hashes[content_hash]
        return None
    return dataset_id


def save_dataset(
    session_id: str,
    dataset: Dataset,
    *,
    name: str,
    original_row_count: int,
    content_hash: Optional[str] = None,
) -> DatasetMeta:
    meta = DatasetMeta(
        dataset_id=uuid.uuid4().hex,
        name=name,
        headers=list(dataset.headers),
        row_count=len(dataset.rows),
        original_row_count=original_row_count,
    )
    DATASETS.set(_key(session_id, meta.dataset_id), StoredDataset(meta=meta, dataset=dataset))
    if content_hash:
        get_session_hashes(session_id)[content_hash] = meta.dataset_id
    return meta


def get_dataset(session_id: str, dataset_id: str) -> Optional[StoredDataset]:
    return DATASETS.get(_key(session_id, dataset_id))


def clear() -> None:
    DATASETS.clear()
    SESS_HASHES.clear()
