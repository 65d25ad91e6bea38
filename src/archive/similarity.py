"""Brute-force cosine ranking of archived messages against a query vector."""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .models import Message

Scored = Tuple[float, Message]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|), or 0.0 when either vector has zero magnitude.

    Vectors of different length are compared over their common prefix.
    """
    va = np.asarray(a, dtype=np.float32)
    vb = np.asarray(b, dtype=np.float32)
    n = min(va.shape[0], vb.shape[0])
    if n == 0:
        return 0.0
    va, vb = va[:n], vb[:n]
    denom = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    return float(np.dot(va, vb)) / denom


def rank(query: Sequence[float], messages: Iterable[Message]) -> List[Scored]:
    """Score every message against the query; input order, no truncation."""
    return [(cosine_similarity(m.embedding, query), m) for m in messages]


def top_k(results: Iterable[Scored], k: Optional[int] = None, threshold: Optional[float] = None) -> List[Scored]:
    """Sort scored results best-first, optionally dropping low scores and truncating."""
    out = sorted(results, key=lambda pair: pair[0], reverse=True)
    if threshold is not None:
        out = [pair for pair in out if pair[0] >= threshold]
    if k is not None:
        out = out[: max(0, k)]
    return out
