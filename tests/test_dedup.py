import pytest

from linkhaven.core.models import DeduplicationResult, DuplicateReason, Fingerprint
from linkhaven.similarity import dedup
from linkhaven.similarity.dedup import (
    DAY_MS,
    find_duplicates,
    find_stale_records,
    get_cleanup_recommendations,
    plan_merges,
)

from conftest import make_record


def test_empty_collection():
    result = find_duplicates([])
    assert result == DeduplicationResult()
    assert result.potential_savings == 0


def test_exact_url_pair():
    records = [
        make_record("1", "Example", "https://www.example.com/path/"),
        make_record("2", "Something else entirely", "http://example.com/path?utm_source=newsletter"),
    ]
    result = find_duplicates(records)

    assert len(result.groups) == 1
    group = result.groups[0]
    assert group.reason == DuplicateReason.EXACT_URL
    assert group.similarity == 100
    assert group.member_ids == ["1", "2"]
    assert group.id == "exact_1"
    assert result.total_duplicates == 2
    assert result.potential_savings == 1


def test_unrelated_records_have_no_groups():
    records = [
        make_record("1", "Cooking pasta at home", "https://food.example.org/pasta"),
        make_record("2", "Kernel scheduling internals", "https://lwn.net/articles/1"),
    ]
    assert find_duplicates(records).groups == []


def test_same_domain_similar_url():
    records = [
        make_record("a", "Install guide", "https://docs.example.com/guide/install"),
        make_record("b", "Install guide", "https://docs.example.com/guide/installs"),
    ]
    result = find_duplicates(records)

    assert len(result.groups) == 1
    group = result.groups[0]
    assert group.reason == DuplicateReason.SIMILAR_URL
    assert group.id == "similar_a"
    # one edit over 31 characters
    assert group.similarity == 97


def test_identical_titles_count_at_reduced_weight():
    records = [
        make_record("a", "Release notes", "https://example.com/alpha"),
        make_record("b", "Release notes", "https://example.com/omega-changelog-2"),
    ]
    strict = find_duplicates(records, url_threshold=85)
    assert all(g.reason != DuplicateReason.SIMILAR_URL for g in strict.groups)

    result = find_duplicates(records, url_threshold=80)
    assert len(result.groups) == 1
    assert result.groups[0].similarity == 80


def test_different_domains_never_match_in_url_stage():
    records = [
        make_record("a", "Install guide", "https://one.example.com/guide/install"),
        make_record("b", "Install guide", "https://two.example.com/guide/install"),
    ]
    result = find_duplicates(records)
    assert all(g.reason != DuplicateReason.SIMILAR_URL for g in result.groups)


def test_malformed_urls_group_through_textual_fallback():
    records = [
        make_record("a", "Page", "example.com/page"),
        make_record("b", "Page", "EXAMPLE.com/page/"),
    ]
    result = find_duplicates(records)
    assert len(result.groups) == 1
    assert result.groups[0].reason == DuplicateReason.EXACT_URL


def test_fingerprint_stage_merges_chains(monkeypatch):
    hashes = {
        "A ": Fingerprint(high=0, low=1 << 20),
        "B ": Fingerprint(high=0, low=(1 << 20) | 0b111111),
        "C ": Fingerprint(high=0, low=(1 << 20) | 0xFFF),
    }
    monkeypatch.setattr(dedup, "fingerprint", lambda text: hashes[text])

    records = [make_record("A", "A"), make_record("B", "B"), make_record("C", "C")]
    result = find_duplicates(records)

    assert len(result.groups) == 1
    group = result.groups[0]
    assert group.reason == DuplicateReason.SIMILAR_TITLE
    assert group.id == "title_A"
    # A and C are 12 bits apart but joined through B
    assert group.member_ids == ["A", "B", "C"]
    assert group.similarity == 91


def test_fingerprint_stage_finds_near_identical_titles():
    title = "Understanding Rust ownership borrowing lifetimes explained"
    records = [make_record("n1", title), make_record("n2", title + "!")]
    result = find_duplicates(records)

    assert len(result.groups) == 1
    assert result.groups[0].reason == DuplicateReason.SIMILAR_TITLE
    assert result.groups[0].similarity == 100


def test_groups_are_disjoint_and_sorted():
    records = [
        make_record("1", "Same", "https://example.com/a"),
        make_record("2", "Same", "https://example.com/a/"),
        make_record("3", "Install guide", "https://docs.example.com/guide/install"),
        make_record("4", "Install guide", "https://docs.example.com/guide/installs"),
    ]
    result = find_duplicates(records)

    assert [g.similarity for g in result.groups] == sorted((g.similarity for g in result.groups), reverse=True)
    seen = [mid for g in result.groups for mid in g.member_ids]
    assert len(seen) == len(set(seen))
    assert result.groups[0].reason == DuplicateReason.EXACT_URL


def test_plan_merges_keeps_oldest():
    records = [
        make_record("new", "Doc", "https://example.com/doc", created_at=500),
        make_record("old", "Doc", "https://example.com/doc/", created_at=100),
    ]
    plans = plan_merges(find_duplicates(records), records)

    assert len(plans) == 1
    assert plans[0].keep_id == "old"
    assert plans[0].delete_ids == ["new"]


@pytest.fixture
def aging_records():
    now = 1000 * DAY_MS
    return now, [
        make_record("fresh", "Garden roses", "https://gardening.io/roses", created_at=now - 10 * DAY_MS),
        make_record("old", "Comet tails", "https://astronomy.net/comets", created_at=now - 400 * DAY_MS),
        make_record("older", "Bicycle gears", "https://cycling.dev/gears", created_at=now - 800 * DAY_MS),
        make_record("dead", "Sourdough bread", "https://baking.org/loaf", created_at=now, link_health="dead"),
    ]


def test_find_stale_records(aging_records):
    now, records = aging_records
    stale = find_stale_records(records, stale_days=365, now_ms=now)
    assert [r.id for r in stale] == ["older", "old"]


def test_cleanup_recommendations(aging_records):
    now, records = aging_records
    rec = get_cleanup_recommendations(records, stale_days=365, now_ms=now)

    assert rec.duplicates.groups == []
    assert [r.id for r in rec.broken_links] == ["dead"]
    # 0 duplicates + 2 stale // 2 + 1 broken
    assert rec.total_cleanup_potential == 2


def test_records_without_tokens_are_not_title_duplicates(record_factory):
    # non-ASCII, digits only, stop words only, empty
    records = [
        record_factory("n1", "Список покупок"),
        record_factory("n2", "会议记录"),
        record_factory("n3", "2024"),
        record_factory("n4", "the and of"),
        record_factory("n5", ""),
    ]
    result = find_duplicates(records)

    assert result.groups == []
    assert result.potential_savings == 0


def test_tokenless_records_do_not_join_real_groups(record_factory):
    title = "Understanding Rust ownership borrowing lifetimes explained"
    records = [
        record_factory("empty1", "会议记录"),
        record_factory("r1", title),
        record_factory("empty2", "2024"),
        record_factory("r2", title),
    ]
    result = find_duplicates(records)

    assert [g.member_ids for g in result.groups] == [["r1", "r2"]]
