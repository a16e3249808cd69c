"""Cosine similarity over plain float vectors."""

import math


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Return ``dot(a, b) / (|a| * |b|)``, clamped to [-1, 1].

    Returns 0.0 when either vector is empty or has zero magnitude.
    Raises ValueError when the vectors have different dimensions.
    """
    if len(a) != len(b):
        raise ValueError(f"Embedding dimension mismatch: {len(a)} != {len(b)}")
    if not a:
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b, strict=True):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a <= 0.0 or norm_b <= 0.0:
        return 0.0
    sim = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    return max(-1.0, min(1.0, sim))
