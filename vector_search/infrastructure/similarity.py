"""Cosine-similarity scoring and top-K ranking over stored chunk records."""

from collections.abc import Iterable, Sequence

import numpy as np

from vector_search.domain.models import ChunkRecord


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return dot(a, b) / (|a| * |b|).

    Empty vectors, vectors of different length and zero-magnitude vectors all
    score 0.0 instead of raising.
    """
    if len(a) == 0 or len(a) != len(b):
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if norm == 0.0:
        return 0.0
    return float(np.dot(va, vb) / norm)


def rank(
    query_vector: Sequence[float],
    records: Iterable[ChunkRecord],
    threshold: float,
    max_results: int,
) -> list[tuple[ChunkRecord, float]]:
    """Score every record, keep score >= threshold, best first, top max_results.

    The sort is stable, so equal scores keep the store's insertion order.
    """
    scored: list[tuple[ChunkRecord, float]] = []
    for record in records:
        score = cosine_similarity(query_vector, record.embedding)
        if score >= threshold:
            scored.append((record, score))

    scored.sort(key=lambda pair: pair[1], reverse=True)
    return scored[:max_results]
