"""Pure similarity functions and metric semantics.

The metric of an index is fixed at construction; every backend must report
scores in the units defined here so ranking stays consistent.
"""

from collections.abc import Sequence
from enum import Enum
from math import sqrt

from .errors import ConfigurationError
from .types import Score


class Metric(str, Enum):
    """Similarity metric of an index."""

    COSINE = "cosine"  # similarity, higher is better
    L2 = "l2"  # squared Euclidean distance, lower is better
    INNER_PRODUCT = "ip"  # dot product, higher is better

    @property
    def higher_is_better(self) -> bool:
        return self is not Metric.L2

    @classmethod
    def parse(cls, value: str) -> "Metric":
        aliases = {"euclid": cls.L2, "euclidean": cls.L2, "dot": cls.INNER_PRODUCT}
        key = value.strip().lower()
        if key in aliases:
            return aliases[key]
        try:
            return cls(key)
        except ValueError as ex:
            raise ConfigurationError(f"unknown similarity metric '{value}'") from ex


def cosine(u: Sequence[float], v: Sequence[float]) -> Score:
    """Compute cosine similarity between two vectors.

    Args:
        u: First vector
        v: Second vector

    Returns:
        Cosine similarity score between -1 and 1
    """
    dot = sum(a * b for a, b in zip(u, v, strict=True))
    nu = sqrt(sum(a * a for a in u)) or 1.0
    nv = sqrt(sum(b * b for b in v)) or 1.0
    return dot / (nu * nv)


def squared_euclidean(u: Sequence[float], v: Sequence[float]) -> Score:
    return sum((a - b) ** 2 for a, b in zip(u, v, strict=True))


def inner_product(u: Sequence[float], v: Sequence[float]) -> Score:
    return sum(a * b for a, b in zip(u, v, strict=True))


def score(metric: Metric, u: Sequence[float], v: Sequence[float]) -> Score:
    """Score ``v`` against query ``u`` under ``metric``."""
    if metric is Metric.COSINE:
        return cosine(u, v)
    if metric is Metric.L2:
        return squared_euclidean(u, v)
    return inner_product(u, v)


def best_first_key(metric: Metric, value: Score, ident: str) -> tuple[float, str]:
    """Sort key putting the best score first and breaking ties by ascending id."""
    return (-value if metric.higher_is_better else value, ident)
