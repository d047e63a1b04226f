"""Vector similarity scoring."""

import math
from typing import Sequence


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """Cosine of the angle between two vectors.

    Args:
        vec1 (Sequence[float]): First vector.
        vec2 (Sequence[float]): Second vector, same length as vec1.

    Returns:
        float: Value in [-1, 1]; 0.0 if either vector has zero norm.

    Raises:
        ValueError: If the vectors differ in length. Mixed dimensionality means
            embeddings from different models were stored side by side.
    """
    if len(vec1) != len(vec2):
        raise ValueError(f"Vectors must have the same length (got {len(vec1)} and {len(vec2)}).")

    dot_product = 0.0
    norm1 = 0.0
    norm2 = 0.0
    for x, y in zip(vec1, vec2):
        dot_product += x * y
        norm1 += x * x
        norm2 += y * y

    denominator = math.sqrt(norm1) * math.sqrt(norm2)
    if denominator == 0:
        return 0.0
    return dot_product / denominator


def map_to_score(cosine: float) -> float:
    """Map a cosine similarity to a 0-100 confidence score.

    Negative cosines are clamped to 0.
    """
    clamped = max(0.0, min(1.0, cosine))
    return clamped * 100
