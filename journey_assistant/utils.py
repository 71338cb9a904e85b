"""Utilities supporting Journey Assistant modules."""

from __future__ import annotations

import hashlib
import json
import random
import string
from datetime import datetime, timezone
from typing import Any, List, Sequence

import numpy as np


_ID_ALPHABET = string.ascii_lowercase + string.digits

EMBEDDING_SIZE = 100


def generate_id(prefix: str, *, size: int = 8) -> str:
    """Generate a short unique identifier with a readable prefix."""

    suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(size))
    return f"{prefix}_{suffix}"


def hashed_bag_of_words(text: str, *, length: int = EMBEDDING_SIZE) -> List[float]:
    """Produce a deterministic term-count vector by hashing words into buckets.

    The embedding is not semantically meaningful: two texts are only close when
    they share literal (lower-cased, whitespace separated) tokens. It stands in
    for a real embedding service behind the same interface.
    """

    if length <= 0:
        raise ValueError("length must be positive")

    vector = np.zeros(length, dtype=np.float64)
    for word in text.lower().split():
        digest = hashlib.sha256(word.encode("utf-8", errors="ignore")).digest()
        bucket = int.from_bytes(digest[:4], "big") % length
        vector[bucket] += 1.0
    return vector.tolist()


def cosine_similarity(vec_a: Sequence[float], vec_b: Sequence[float]) -> float:
    if not len(vec_a) or not len(vec_b):
        return 0.0
    a = np.asarray(vec_a, dtype=np.float64)
    b = np.asarray(vec_b, dtype=np.float64)
    if a.shape != b.shape:
        # Align lengths by truncating to the shortest vector.
        length = min(a.shape[0], b.shape[0])
        a = a[:length]
        b = b[:length]
    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if not norm_a or not norm_b:
        return 0.0
    return float(np.dot(a, b) / (norm_a * norm_b))


def clamp_unit(value: float) -> float:
    """Clamp a score into the closed interval [0, 1]."""

    return max(0.0, min(1.0, float(value)))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(raw: Any) -> datetime:
    """Read a timestamp from ISO text, epoch seconds/milliseconds or a datetime."""

    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        seconds = raw / 1000 if raw > 1e11 else raw
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(raw, str) and raw.strip():
        text = raw.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise ValueError(f"Unsupported timestamp value: {raw!r}")


def serialize_vector(vector: Sequence[float]) -> str:
    """Serialize vector to JSON for persistence."""

    return json.dumps(list(vector), ensure_ascii=True)


def deserialize_vector(serialized: str) -> List[float]:
    """Read vector from stored JSON text."""

    return json.loads(serialized)
