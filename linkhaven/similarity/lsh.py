"""
Hamming-distance comparison and LSH bucketing over SimHash fingerprints.

Bucketing uses the top 8 bits of the high word (256 buckets). A fingerprint
is only compared with fingerprints in its own bucket and the two
numerically adjacent buckets, which keeps candidate discovery near O(N) for
uniformly spread fingerprints. If most fingerprints collapse into a single
bucket the cost degrades towards O(N^2); this is accepted as-is.
"""

import math
from typing import Dict, List, Optional, Sequence, Set, Tuple

from loguru import logger

from ..core.models import Fingerprint, SimilarPair, TagSuggestion

DEFAULT_THRESHOLD = 6
BUCKET_COUNT = 256


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def popcount32(n: int) -> int:
    return bin(n & 0xFFFFFFFF).count("1")


def hamming_distance(a: Fingerprint, b: Fingerprint) -> int:
    return popcount32(a.high ^ b.high) + popcount32(a.low ^ b.low)


def distance_to_similarity(distance: int) -> int:
    """0 differing bits -> 100, 64 differing bits -> 0."""
    return round_half_up((1 - distance / 64) * 100)


def is_similar(a: Fingerprint, b: Fingerprint, threshold: int = DEFAULT_THRESHOLD) -> bool:
    return hamming_distance(a, b) <= threshold


def bucket_key(fp: Fingerprint) -> int:
    return (fp.high >> 24) & 0xFF


def build_buckets(fingerprints: Sequence[Fingerprint]) -> Dict[int, List[int]]:
    buckets: Dict[int, List[int]] = {}
    for idx, fp in enumerate(fingerprints):
        buckets.setdefault(bucket_key(fp), []).append(idx)
    return buckets


def _neighbour_keys(key: int) -> List[int]:
    return [k for k in (key - 1, key, key + 1) if 0 <= k < BUCKET_COUNT]


def find_similar_pairs(
    fingerprints: Sequence[Fingerprint],
    threshold: int = DEFAULT_THRESHOLD,
) -> List[SimilarPair]:
    """Return every index pair (i < j) within ``threshold`` bits, best first."""
    pairs: List[SimilarPair] = []
    if not fingerprints:
        return pairs

    buckets = build_buckets(fingerprints)
    compared: Set[Tuple[int, int]] = set()

    def _compare(i: int, j: int) -> None:
        key = (i, j) if i < j else (j, i)
        if key in compared:
            return
        compared.add(key)
        distance = hamming_distance(fingerprints[key[0]], fingerprints[key[1]])
        if distance <= threshold:
            pairs.append(SimilarPair(key[0], key[1], distance_to_similarity(distance)))

    for key, indices in buckets.items():
        for a in range(len(indices)):
            for b in range(a + 1, len(indices)):
                _compare(indices[a], indices[b])

        # adjacent buckets catch matches that straddle a bucket boundary
        for adj_key in (key - 1, key + 1):
            adj_indices = buckets.get(adj_key)
            if not adj_indices:
                continue
            for i in indices:
                for j in adj_indices:
                    if i >= j:
                        continue
                    _compare(i, j)

    logger.debug(
        f"LSH: {len(fingerprints)} fingerprints, {len(buckets)} buckets, "
        f"{len(compared)} comparisons, {len(pairs)} pairs <= {threshold}"
    )
    pairs.sort(key=lambda p: p.similarity, reverse=True)
    return pairs


def cluster_by_similarity(
    fingerprints: Sequence[Fingerprint],
    threshold: int = DEFAULT_THRESHOLD,
) -> List[List[int]]:
    """Greedy single-pass clustering over the same bucket neighbourhood.

    Each index lands in exactly one cluster; unmatched items form singleton
    clusters. Unlike the union-find grouping in dedup.py this is not
    transitive: members are only required to be close to the cluster seed.
    """
    if not fingerprints:
        return []

    buckets = build_buckets(fingerprints)
    visited: Set[int] = set()
    clusters: List[List[int]] = []

    for i, fp in enumerate(fingerprints):
        if i in visited:
            continue
        cluster = [i]
        visited.add(i)
        for key in _neighbour_keys(bucket_key(fp)):
            for j in buckets.get(key, []):
                if j in visited:
                    continue
                if is_similar(fp, fingerprints[j], threshold):
                    cluster.append(j)
                    visited.add(j)
        clusters.append(cluster)

    return clusters


def suggest_tags(
    target: Fingerprint,
    existing: Sequence[Fingerprint],
    existing_tags: Sequence[Optional[Sequence[str]]],
    max_suggestions: int = 5,
    threshold: int = DEFAULT_THRESHOLD,
) -> List[TagSuggestion]:
    """Suggest tags for new content from the tags of similar existing items.

    confidence = min(100, round(avg_similarity * log2(count + 1) / 2))
    """
    if not existing:
        return []

    buckets = build_buckets(existing)
    scores: Dict[str, List[int]] = {}

    for key in _neighbour_keys(bucket_key(target)):
        for idx in buckets.get(key, []):
            distance = hamming_distance(target, existing[idx])
            if distance > threshold:
                continue
            similarity = distance_to_similarity(distance)
            tags = existing_tags[idx] if idx < len(existing_tags) else None
            for tag in tags or []:
                entry = scores.setdefault(tag, [0, 0])
                entry[0] += similarity
                entry[1] += 1

    suggestions = []
    for tag, (total, count) in scores.items():
        avg = total / count
        confidence = min(100, round_half_up(avg * math.log2(count + 1) / 2))
        suggestions.append(TagSuggestion(tag=tag, confidence=confidence, source_count=count))

    suggestions.sort(key=lambda s: s.confidence, reverse=True)
    return suggestions[:max_suggestions]
