import random

import pytest

from normalizer import SourceRecord
from reconciliation import (
    ComparisonRow,
    MatchStatus,
    aggregate_records,
    combine_aggregates,
    reconcile,
    reconcile_aggregates,
)


def test_reconcile_outer_join_example(csv_records, json_records):
    rows = reconcile(csv_records, json_records)

    assert [r.to_dict() for r in rows] == [
        {"user": "Alice", "key": "u1", "csv_count": 5, "json_count": 5, "difference": 0, "status": "Match"},
        {"user": "Bob", "key": "u2", "csv_count": 3, "json_count": 0, "difference": 3, "status": "Mismatch"},
        {"user": "Carl", "key": "u3", "csv_count": 0, "json_count": 2, "difference": 2, "status": "Mismatch"},
    ]
    assert sum(r.csv_count for r in rows) == 8
    assert sum(r.json_count for r in rows) == 7


def test_reconcile_empty_inputs():
    assert reconcile([], []) == []


def test_one_side_empty():
    rows = reconcile([SourceRecord("u1", "A", 4)], [])

    assert rows == [ComparisonRow.build(user="A", key="u1", csv_count=4, json_count=0)]
    assert rows[0].status is MatchStatus.MISMATCH


def test_counts_are_summed_per_key():
    rows = reconcile(
        [SourceRecord("u1", "Alice", 2), SourceRecord("u1", "Alice", 3)],
        [SourceRecord("u1", "Alice", 5)],
    )

    assert len(rows) == 1
    assert rows[0].csv_count == 5
    assert rows[0].status is MatchStatus.MATCH


def test_row_order_is_csv_first_seen_then_json_only():
    csv_side = [SourceRecord(k, k, 1) for k in ["b", "a", "b"]]
    json_side = [SourceRecord(k, k, 1) for k in ["c", "a", "d", "c"]]

    rows = reconcile(csv_side, json_side)

    assert [r.key for r in rows] == ["b", "a", "c", "d"]


def test_user_label_prefers_first_csv_label():
    rows = reconcile(
        [SourceRecord("u1", "Alice", 1), SourceRecord("u1", "Alice S.", 1)],
        [SourceRecord("u1", "Alicia", 2), SourceRecord("u2", "Zed", 1), SourceRecord("u2", "Zed Z.", 1)],
    )

    assert [(r.key, r.user) for r in rows] == [("u1", "Alice"), ("u2", "Zed")]


def test_zero_count_csv_only_key_is_a_match():
    rows = reconcile([SourceRecord("u9", "Ghost", 0)], [])

    assert rows[0].difference == 0
    assert rows[0].status is MatchStatus.MATCH


def test_keys_are_compared_exactly():
    rows = reconcile([SourceRecord("001", "x", 1)], [SourceRecord("1", "x", 1)])

    assert [r.key for r in rows] == ["001", "1"]
    assert all(r.status is MatchStatus.MISMATCH for r in rows)


def test_comparison_row_is_immutable():
    row = ComparisonRow.build(user="A", key="k", csv_count=1, json_count=2)

    with pytest.raises(AttributeError):
        row.csv_count = 2


def _random_records(rng, keys, n):
    return [SourceRecord(k, f"User {k}", rng.randint(0, 20)) for k in (rng.choice(keys) for _ in range(n))]


@pytest.mark.parametrize("seed", range(5))
def test_invariants_hold_on_random_inputs(seed):
    rng = random.Random(seed)
    keys = [f"k{i}" for i in range(30)]
    csv_side = _random_records(rng, keys[:20], 60)
    json_side = _random_records(rng, keys[10:], 60)

    rows = reconcile(csv_side, json_side)

    assert len({r.key for r in rows}) == len(rows)
    assert {r.key for r in rows} == {r.key for r in csv_side} | {r.key for r in json_side}
    assert sum(r.csv_count for r in rows) == sum(r.count for r in csv_side)
    assert sum(r.json_count for r in rows) == sum(r.count for r in json_side)
    for r in rows:
        assert r.difference == abs(r.csv_count - r.json_count)
        assert (r.status is MatchStatus.MATCH) == (r.difference == 0)

    assert reconcile(csv_side, json_side) == rows


def test_chunked_aggregation_matches_single_pass():
    rng = random.Random(7)
    keys = [f"user{i}@example.com" for i in range(12)]
    csv_side = _random_records(rng, keys, 50)
    json_side = _random_records(rng, keys[3:], 40)

    csv_partials = [aggregate_records(csv_side[i:i + 7]) for i in range(0, len(csv_side), 7)]
    json_partials = [aggregate_records(json_side[i:i + 9]) for i in range(0, len(json_side), 9)]

    chunked = reconcile_aggregates(combine_aggregates(csv_partials), combine_aggregates(json_partials))

    assert chunked == reconcile(csv_side, json_side)


def test_combine_aggregates_of_nothing_is_empty():
    totals = combine_aggregates([aggregate_records([]), aggregate_records([])])

    assert totals.empty
    assert reconcile_aggregates(totals, totals) == []


def test_large_per_key_totals_do_not_wrap():
    big = 2**62
    rows = reconcile([SourceRecord("u1", "A", big)] * 2, [SourceRecord("u1", "A", 2**63 - 1)])

    assert rows[0].csv_count == 2**63
    assert rows[0].json_count == 2**63 - 1
    assert rows[0].difference == 1
    assert rows[0].status is MatchStatus.MISMATCH


def test_large_totals_survive_chunk_merging():
    big = 2**63 - 1
    partials = [aggregate_records([SourceRecord("u1", "A", big)]) for _ in range(3)]

    rows = reconcile_aggregates(combine_aggregates(partials), aggregate_records([]))

    assert rows[0].csv_count == 3 * big
    assert rows[0].json_count == 0
    assert rows[0].status is MatchStatus.MISMATCH
