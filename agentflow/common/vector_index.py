"""
Vector Index

In-process similarity index for knowledge passages, built on faiss.
Stores `{id, values, metadata}` records and answers top-k cosine queries.
Vectors are L2-normalised before they enter an inner-product index, so
scores are cosine similarities and zero vectors score 0.

With a snapshot path the faiss index is written with `faiss.write_index`
and the id/metadata side table next to it as JSON, so ingested knowledge
survives restarts.

All operations return the result-dict shape
{"ok": bool, ...payload..., "error": str (only when ok is False)}.
"""

import json
import logging
import threading
from pathlib import Path
from typing import List, Dict, Any, Optional

import faiss
import numpy as np

logger = logging.getLogger("agentflow.common.vector_index")


def _normalise(rows: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(rows, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return np.ascontiguousarray(rows / norms, dtype=np.float32)


class VectorIndex:
    """
    Cosine-similarity index backed by faiss.IndexIDMap2(IndexFlatIP).

    Record ids are strings; each gets a stable int64 label inside faiss.
    Upserts replace records with the same id. Queries may carry an
    equality filter on metadata fields (e.g. {"agent_id": "3"}).
    """

    def __init__(self, dimension: int = 384, snapshot_path: Optional[str] = None):
        """
        Initialize vector index.

        Args:
            dimension: Expected vector dimension
            snapshot_path: Optional faiss index file to load from and save to;
                metadata goes to the same path with a ".meta.json" suffix
        """
        self._dimension = dimension
        self._index_path = Path(snapshot_path).expanduser() if snapshot_path else None
        self._meta_path = self._index_path.with_suffix(".meta.json") if self._index_path else None
        self._index = faiss.IndexIDMap2(faiss.IndexFlatIP(dimension))
        self._labels: Dict[str, int] = {}
        self._records: Dict[int, Dict[str, Any]] = {}
        self._next_label = 0
        self._lock = threading.Lock()

        if self._index_path and self._index_path.exists():
            self._load_snapshot()

    @property
    def dimension(self) -> int:
        return self._dimension

    def count(self) -> int:
        """Number of stored vectors"""
        return int(self._index.ntotal)

    def upsert(self, vectors: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Insert or replace vectors.

        Args:
            vectors: List of {"id": str, "values": List[float], "metadata": dict}

        Returns:
            Result dict with ok/error status and upserted count
        """
        for v in vectors:
            if len(v.get("values", [])) != self._dimension:
                return {
                    "ok": False,
                    "error": f"Vector dimension mismatch for {v.get('id')}: "
                             f"expected {self._dimension}, got {len(v.get('values', []))}",
                }

        # Last write wins for ids repeated within the batch
        batch = {v["id"]: v for v in vectors}
        if not batch:
            return {"ok": True, "upserted": 0}

        with self._lock:
            replaced = [self._labels[record_id] for record_id in batch if record_id in self._labels]
            if replaced:
                self._index.remove_ids(np.array(replaced, dtype=np.int64))

            labels = []
            for record_id, v in batch.items():
                label = self._labels.get(record_id)
                if label is None:
                    label = self._next_label
                    self._next_label += 1
                    self._labels[record_id] = label
                self._records[label] = {"id": record_id, "metadata": dict(v.get("metadata") or {})}
                labels.append(label)

            rows = _normalise(np.array([v["values"] for v in batch.values()], dtype=np.float32))
            self._index.add_with_ids(rows, np.array(labels, dtype=np.int64))
            self._save_snapshot()

        return {"ok": True, "upserted": len(vectors)}

    def query(
        self,
        vector: List[float],
        topk: int = 3,
        filter: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Find the top-k most similar vectors.

        Args:
            vector: Query embedding vector
            topk: Number of results to return
            filter: Optional metadata equality filter

        Returns:
            Result dict with "matches": [{id, score, metadata}] sorted by score descending
        """
        if len(vector) != self._dimension:
            return {
                "ok": False,
                "error": f"Query dimension mismatch: expected {self._dimension}, got {len(vector)}",
            }

        with self._lock:
            total = int(self._index.ntotal)
            if total == 0 or topk <= 0:
                return {"ok": True, "matches": []}

            # A filtered query has to see every candidate before trimming to topk
            k = total if filter else min(topk, total)
            query = _normalise(np.asarray(vector, dtype=np.float32).reshape(1, -1))
            scores, labels = self._index.search(query, k)

            matches = []
            for score, label in zip(scores[0], labels[0]):
                if label < 0:
                    continue
                record = self._records[int(label)]
                metadata = record["metadata"]
                if filter and not all(metadata.get(key) == val for key, val in filter.items()):
                    continue
                matches.append({"id": record["id"], "score": float(score), "metadata": dict(metadata)})
                if len(matches) == topk:
                    break

        return {"ok": True, "matches": matches}

    def delete(self, ids: List[str]) -> Dict[str, Any]:
        """Delete vectors by id"""
        with self._lock:
            labels = [self._labels.pop(record_id) for record_id in set(ids) if record_id in self._labels]
            for label in labels:
                del self._records[label]
            removed = 0
            if labels:
                removed = int(self._index.remove_ids(np.array(labels, dtype=np.int64)))
                self._save_snapshot()

        return {"ok": True, "deleted": removed}

    def _load_snapshot(self) -> None:
        """Load index and side table from disk"""
        try:
            index = faiss.read_index(str(self._index_path))
            with open(self._meta_path) as f:
                data = json.load(f)
        except (RuntimeError, json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load vector index snapshot: %s", e)
            return

        if index.d != self._dimension:
            logger.warning(
                "Ignoring vector index snapshot with dimension %d (expected %d)",
                index.d, self._dimension,
            )
            return

        self._index = index
        self._records = {int(label): record for label, record in data.get("records", {}).items()}
        self._labels = {record["id"]: label for label, record in self._records.items()}
        self._next_label = data.get("next_label", max(self._records, default=-1) + 1)
        logger.info("Loaded %d vectors from %s", self._index.ntotal, self._index_path)

    def _save_snapshot(self) -> None:
        """Save index to disk (caller holds the lock)"""
        if not self._index_path:
            return

        self._index_path.parent.mkdir(parents=True, exist_ok=True)
        faiss.write_index(self._index, str(self._index_path))
        with open(self._meta_path, "w") as f:
            json.dump({"next_label": self._next_label, "records": self._records}, f)
