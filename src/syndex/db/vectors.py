"""Vector encoding for the fragment store and cosine similarity."""

from __future__ import annotations

import math
import struct
from collections.abc import Sequence

import sqlite_vec


def encode_vector(vector: Sequence[float]) -> bytes:
    """Encode *vector* as the little-endian float32 BLOB sqlite-vec understands."""
    return sqlite_vec.serialize_float32(list(vector))


def decode_vector(blob: bytes) -> list[float]:
    """Decode a float32 BLOB written by encode_vector()."""
    if len(blob) % 4:
        raise ValueError(f"Vector BLOB length {len(blob)} is not a multiple of 4")
    return list(struct.unpack(f"<{len(blob) // 4}f", blob))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return dot(a, b) / (|a| * |b|), clamped to [-1, 1].

    A zero-norm vector on either side has similarity 0.0 (never NaN), which
    keeps ranking total.

    Raises:
        ValueError: If the vectors have different dimensions.
    """
    if len(a) != len(b):
        raise ValueError(f"Dimension mismatch: {len(a)} != {len(b)}")

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    score = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    # float rounding can push parallel vectors a hair past 1
    return max(-1.0, min(1.0, score))
