"""
Duplicate detection over a record collection.

Three sequential stages share one ``processed`` set; a record placed in a
group by an earlier stage is invisible to later stages.

1) exact_url     - identical normalized URLs (similarity 100)
2) similar_url   - same domain, edit-distance similarity of URL or title
3) similar_title - SimHash + LSH candidate pairs, merged with union-find

Stage 3 drops a whole cluster if any of its members is already processed.
This keeps group membership disjoint at the cost of leaving some
transitively similar items ungrouped.
Records whose text yields no tokens get the zero fingerprint and are left
out of stage 3.

Nothing in here raises for well-typed input: malformed URLs degrade to a
textual normalization and are still fingerprinted in stage 3.
"""

import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set

from loguru import logger

from ..core.models import (
    CleanupRecommendation,
    DeduplicationResult,
    DuplicateGroup,
    DuplicateReason,
    MergePlan,
    Record,
)
from .lsh import find_similar_pairs, round_half_up
from .simhash import fingerprint
from .text import extract_domain, normalize_url, string_similarity
from .union_find import UnionFind

DEFAULT_URL_THRESHOLD = 85
DEFAULT_TITLE_THRESHOLD = 80
TITLE_WEIGHT = 0.8
# Hamming distance 6 ~ 90% similar
FINGERPRINT_THRESHOLD = 6

DAY_MS = 24 * 60 * 60 * 1000


def _exact_url_groups(records: Sequence[Record], processed: Set[str]) -> List[DuplicateGroup]:
    by_url: Dict[str, List[Record]] = {}
    for record in records:
        if not record.url:
            continue
        by_url.setdefault(normalize_url(record.url), []).append(record)

    groups = []
    for members in by_url.values():
        if len(members) < 2:
            continue
        groups.append(DuplicateGroup(
            id=f"exact_{members[0].id}",
            member_ids=[r.id for r in members],
            similarity=100,
            reason=DuplicateReason.EXACT_URL,
        ))
        processed.update(r.id for r in members)
    return groups


def _same_domain_groups(
    records: Sequence[Record],
    processed: Set[str],
    url_threshold: float,
) -> List[DuplicateGroup]:
    by_domain: Dict[str, List[Record]] = {}
    for record in records:
        if record.id in processed:
            continue
        domain = extract_domain(record.url)
        if domain is None:
            continue
        by_domain.setdefault(domain, []).append(record)

    groups = []
    for members in by_domain.values():
        if len(members) < 2:
            continue

        normalized = [normalize_url(r.url) for r in members]
        for i, anchor in enumerate(members):
            if anchor.id in processed:
                continue

            similar = [anchor]
            best = 0.0
            for j in range(i + 1, len(members)):
                other = members[j]
                if other.id in processed:
                    continue

                url_sim = string_similarity(normalized[i], normalized[j])
                title_sim = string_similarity(anchor.title, other.title)
                combined = max(url_sim, title_sim * TITLE_WEIGHT)

                if combined >= url_threshold:
                    similar.append(other)
                    best = max(best, combined)
                    processed.add(other.id)

            if len(similar) > 1:
                groups.append(DuplicateGroup(
                    id=f"similar_{anchor.id}",
                    member_ids=[r.id for r in similar],
                    similarity=min(100, round_half_up(best)),
                    reason=DuplicateReason.SIMILAR_URL,
                ))
                processed.add(anchor.id)
    return groups


@dataclass
class _Cluster:
    indices: List[int] = field(default_factory=list)
    similarity: int = 0


def _fingerprint_groups(records: Sequence[Record], processed: Set[str]) -> List[DuplicateGroup]:
    remaining = []
    hashes = []
    for record in records:
        if record.id in processed:
            continue
        fp = fingerprint(f"{record.title} {normalize_url(record.url)}")
        # no tokens: nothing to compare, not a perfect match
        if fp.is_zero:
            continue
        remaining.append(record)
        hashes.append(fp)
    if len(remaining) < 2:
        return []

    pairs = find_similar_pairs(hashes, FINGERPRINT_THRESHOLD)

    uf = UnionFind()
    for pair in pairs:
        uf.union(pair.i, pair.j)

    # clusters keyed by root, members in the order pairs are seen
    clusters: Dict[int, _Cluster] = {}
    for pair in pairs:
        cluster = clusters.setdefault(uf.find(pair.i), _Cluster())
        if pair.i not in cluster.indices:
            cluster.indices.append(pair.i)
        if pair.j not in cluster.indices:
            cluster.indices.append(pair.j)
        cluster.similarity = max(cluster.similarity, pair.similarity)

    groups = []
    for cluster in clusters.values():
        members = [remaining[i] for i in cluster.indices]
        if len(members) < 2:
            continue
        if any(r.id in processed for r in members):
            continue
        groups.append(DuplicateGroup(
            id=f"title_{members[0].id}",
            member_ids=[r.id for r in members],
            similarity=cluster.similarity,
            reason=DuplicateReason.SIMILAR_TITLE,
        ))
        processed.update(r.id for r in members)
    return groups


def find_duplicates(
    records: Sequence[Record],
    url_threshold: float = DEFAULT_URL_THRESHOLD,
    title_threshold: float = DEFAULT_TITLE_THRESHOLD,
) -> DeduplicationResult:
    """Run the three-stage duplicate pipeline.

    ``title_threshold`` is kept for interface compatibility; titles only
    contribute to stage 2 through the fixed 0.8 weighting against
    ``url_threshold``.
    """
    processed: Set[str] = set()

    exact = _exact_url_groups(records, processed)
    similar = _same_domain_groups(records, processed, url_threshold)
    fuzzy = _fingerprint_groups(records, processed)

    groups = exact + similar + fuzzy
    groups.sort(key=lambda g: g.similarity, reverse=True)

    logger.debug(
        f"Duplicates: {len(records)} records -> exact={len(exact)} "
        f"similar_url={len(similar)} similar_title={len(fuzzy)}"
    )

    return DeduplicationResult(
        groups=groups,
        total_duplicates=sum(g.size for g in groups),
        potential_savings=sum(g.size - 1 for g in groups),
    )


def find_stale_records(
    records: Sequence[Record],
    stale_days: int = 365,
    now_ms: Optional[int] = None,
) -> List[Record]:
    """Records created more than ``stale_days`` ago, oldest first."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    cutoff = now_ms - stale_days * DAY_MS
    return sorted((r for r in records if r.created_at < cutoff), key=lambda r: r.created_at)


def get_cleanup_recommendations(
    records: Sequence[Record],
    stale_days: int = 365,
    now_ms: Optional[int] = None,
) -> CleanupRecommendation:
    duplicates = find_duplicates(records)
    stale = find_stale_records(records, stale_days, now_ms)
    broken = [r for r in records if r.link_health == "dead"]

    return CleanupRecommendation(
        duplicates=duplicates,
        stale_records=stale,
        broken_links=broken,
        # assume half of the stale records can go
        total_cleanup_potential=duplicates.potential_savings + len(stale) // 2 + len(broken),
    )


def plan_merges(result: DeduplicationResult, records: Sequence[Record]) -> List[MergePlan]:
    """Keep the oldest member of every group, delete the others."""
    by_id = {r.id: r for r in records}
    plans = []
    for group in result.groups:
        members = [by_id[mid] for mid in group.member_ids if mid in by_id]
        if len(members) < 2:
            continue
        keep = min(members, key=lambda r: r.created_at)
        plans.append(MergePlan(
            group_id=group.id,
            keep_id=keep.id,
            delete_ids=[r.id for r in members if r.id != keep.id],
        ))
    return plans
