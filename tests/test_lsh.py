from linkhaven.core.models import Fingerprint
from linkhaven.similarity.lsh import (
    bucket_key,
    cluster_by_similarity,
    distance_to_similarity,
    find_similar_pairs,
    hamming_distance,
    is_similar,
    suggest_tags,
)
from linkhaven.similarity.simhash import fingerprint


def fp(high=0, low=0):
    return Fingerprint(high=high, low=low)


def test_hamming_distance_range_and_symmetry():
    a = fp(0xFFFFFFFF, 0xFFFFFFFF)
    b = fp(0, 0)
    assert hamming_distance(a, b) == 64
    assert hamming_distance(b, a) == 64
    assert hamming_distance(a, a) == 0

    c = fingerprint("graph layout with quadtrees")
    d = fingerprint("duplicate detection with fingerprints")
    assert hamming_distance(c, d) == hamming_distance(d, c)
    assert 0 <= hamming_distance(c, d) <= 64


def test_hamming_counts_both_words():
    assert hamming_distance(fp(0b1011, 0), fp(0, 0b11)) == 5


def test_distance_to_similarity_bounds_and_monotonic():
    assert distance_to_similarity(0) == 100
    assert distance_to_similarity(64) == 0
    values = [distance_to_similarity(d) for d in range(65)]
    assert all(a >= b for a, b in zip(values, values[1:]))


def test_distance_to_similarity_rounds_half_up():
    # (1 - 24/64) * 100 == 62.5
    assert distance_to_similarity(24) == 63
    assert distance_to_similarity(6) == 91


def test_is_similar_threshold_inclusive():
    assert is_similar(fp(0, 0), fp(0, 0b111111))
    assert not is_similar(fp(0, 0), fp(0, 0b1111111))


def test_bucket_key_uses_top_byte():
    assert bucket_key(fp(0xAB000000, 0xFFFFFFFF)) == 0xAB
    assert bucket_key(fp(0x00FFFFFF, 0)) == 0


def test_find_similar_pairs_empty():
    assert find_similar_pairs([]) == []


def test_find_similar_pairs_sorted_and_unique():
    hashes = [fp(0, 0), fp(0, 0b1), fp(0, 0b111), fp(0, 0xFFFF)]
    pairs = find_similar_pairs(hashes, threshold=6)

    assert [(p.i, p.j) for p in pairs] == [(0, 1), (1, 2), (0, 2)]
    assert [p.similarity for p in pairs] == [98, 97, 95]
    assert all(p.i < p.j for p in pairs)


def test_adjacent_buckets_are_compared():
    hashes = [fp(0x01000000, 0), fp(0x00000000, 0)]
    pairs = find_similar_pairs(hashes, threshold=6)
    assert len(pairs) == 1
    assert (pairs[0].i, pairs[0].j) == (0, 1)


def test_distant_buckets_are_not_compared():
    # one differing bit, but buckets 2 and 0 are not neighbours
    hashes = [fp(0x02000000, 0), fp(0x00000000, 0)]
    assert find_similar_pairs(hashes, threshold=6) == []


def test_cluster_by_similarity_partitions_indices():
    hashes = [fp(0, 0), fp(0xFF000000, 0), fp(0, 0b11), fp(0xFF000000, 0b1)]
    clusters = cluster_by_similarity(hashes, threshold=6)

    assert clusters == [[0, 2], [1, 3]]
    flat = sorted(i for c in clusters for i in c)
    assert flat == [0, 1, 2, 3]


def test_suggest_tags_from_similar_items():
    target = fp(0x12345678, 0x9ABCDEF0)
    existing = [target, fp(0x12345678, 0x9ABCDEF1), fp(0xEDCBA987, 0x6543210F)]
    tags = [["python", "async"], ["python"], ["cooking"]]

    suggestions = suggest_tags(target, existing, tags)
    by_tag = {s.tag: s for s in suggestions}

    assert set(by_tag) == {"python", "async"}
    assert by_tag["python"].source_count == 2
    assert by_tag["async"].confidence == 50
    assert suggestions[0].tag == "python"


def test_suggest_tags_without_existing_items():
    assert suggest_tags(fp(), [], []) == []
