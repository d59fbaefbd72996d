import math
from collections import Counter
from typing import Iterable


def shannon_entropy(data: bytes) -> float:
    """Return bits/byte Shannon entropy of data, scaled up for short samples."""
    if not data:
        return 0.0
    counts = Counter(data)
    n = len(data)
    if n < 2:
        return 0.0
    entropy = -sum((count / n) * math.log2(count / n) for count in counts.values())
    if n < 256:
        entropy *= math.log2(256) / math.log2(n)
    return max(0.0, min(entropy, 8.0))


def low_byte_histogram(values: Iterable[int]) -> dict[int, int]:
    """Histogram of ``value % 256`` over a sequence of (big) integers."""
    return dict(Counter(value % 256 for value in values))
