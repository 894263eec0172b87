from __future__ import annotations

from records.chain import RecordChainReconstructor
from records.labels import SubcategoryLabels
from records.ledger import DedupLedger
from records.oracle import SnapshotOracle
from records.scan import STOPPED, FeedScanner, scan_floor

from helpers import CUTOFF, HOUR, NOW, FakeClient, make_run


def _scanner(client: FakeClient, ledger: DedupLedger | None = None, page_size: int = 3) -> FeedScanner:
    ledger = ledger if ledger is not None else DedupLedger()
    oracle = SnapshotOracle(client)
    rec = RecordChainReconstructor(client, oracle, ledger, SubcategoryLabels(client))
    return FeedScanner(client, oracle, rec, ledger, page_size=page_size, overlap=24 * HOUR)


def test_scan_floor() -> None:
    assert scan_floor(NOW, CUTOFF, 24 * HOUR) == NOW - 24 * HOUR
    assert scan_floor(0, CUTOFF, 24 * HOUR) == CUTOFF - 24 * HOUR
    assert scan_floor(0, 100, 24 * HOUR) == 0


def test_scan_detects_current_record_and_stops_at_floor() -> None:
    wr = make_run("wr", 50.0, NOW - 1 * HOUR)
    prev = make_run("prev", 60.0, NOW - 3 * HOUR)
    other = make_run("other", 70.0, NOW - 2 * HOUR, category="c2")
    other_wr = make_run("other_wr", 65.0, CUTOFF - 100 * HOUR, category="c2")
    ancient = make_run("ancient", 99.0, NOW - 30 * HOUR, game="g9")

    client = FakeClient(feed=[wr, other, prev, ancient, make_run("never", 1.0, NOW - 40 * HOUR)])
    client.add_board(wr, prev)
    client.add_board(other_wr, other)

    scanner = _scanner(client)
    result = scanner.scan(NOW - 6 * HOUR, CUTOFF)

    assert scanner.state == STOPPED
    assert result["stop_reason"] == "floor-reached"
    assert [r["run_id"] for r in result["records"]] == ["prev", "wr"]
    assert result["keys_processed"] == 1
    assert result["new_last_seen"] == NOW - 1 * HOUR
    # "ancient" is older than the retention cutoff but newer than the floor: seen, not checked
    assert result["runs_seen"] == 5
    assert result["runs_checked"] == 3
    # the c2 board is checked once (rank-1), never rebuilt
    assert ("leaderboard", "g1|c2||", 200) not in client.calls


def test_rank1_lookup_is_cached_per_partition() -> None:
    wr = make_run("wr", 50.0, NOW - 1 * HOUR)
    slower = [make_run(f"s{i}", 60.0 + i, NOW - (2 + i) * HOUR) for i in range(3)]
    client = FakeClient(feed=[wr] + slower)
    client.add_board(make_run("holder", 10.0, CUTOFF - 10 * HOUR), wr, *slower)

    _scanner(client, page_size=10).scan(0, CUTOFF)

    top1 = [c for c in client.calls if c[0] == "leaderboard" and c[2] == 1]
    assert len(top1) == 1


def test_high_water_mark_never_moves_back() -> None:
    client = FakeClient(feed=[make_run("r", 10.0, NOW - 5 * HOUR)])
    result = _scanner(client).scan(NOW, CUTOFF)
    assert result["new_last_seen"] == NOW


def test_empty_page_stops() -> None:
    client = FakeClient(feed=[])
    result = _scanner(client).scan(0, CUTOFF)
    assert result["stop_reason"] == "empty-page"
    assert result["records"] == []


def test_short_page_exhausts_feed() -> None:
    client = FakeClient(feed=[make_run("a", 10.0, NOW - HOUR)])
    result = _scanner(client, page_size=3).scan(0, CUTOFF)
    assert result["stop_reason"] == "exhausted"
    assert client.count("runs_page") == 1


def test_fetch_failure_keeps_partial_progress() -> None:
    runs = [make_run(f"r{i}", 10.0 + i, NOW - (i + 1) * HOUR, category=f"c{i}") for i in range(5)]
    client = FakeClient(feed=runs)
    for r in runs:
        client.add_board(r)
    client.fail_offsets.add(3)

    scanner = _scanner(client, page_size=3)
    result = scanner.scan(0, CUTOFF)

    assert result["stop_reason"] == "fetch-failed"
    assert [r["run_id"] for r in result["records"]] == ["r0", "r1", "r2"]
    assert result["new_last_seen"] == NOW - HOUR
    assert scanner.errors and scanner.errors[0]["source"] == "runs feed"


def test_overlap_window_reskips_recorded_runs() -> None:
    last_seen = NOW - 2 * HOUR
    recorded = make_run("recorded", 40.0, last_seen - 3 * HOUR)
    client = FakeClient(feed=[recorded, make_run("old", 90.0, last_seen - 30 * HOUR, category="c2")])
    client.add_board(recorded)

    ledger = DedupLedger(["recorded"])
    result = _scanner(client, ledger).scan(last_seen, CUTOFF)

    assert result["records"] == []
    assert client.count("leaderboard") == 0
    assert result["stop_reason"] == "floor-reached"


def test_partition_rebuilt_once_even_if_feed_repeats_a_run() -> None:
    wr = make_run("wr", 50.0, NOW - 1 * HOUR)
    client = FakeClient(feed=[wr, make_run("x", 70.0, NOW - 2 * HOUR, category="c2"), wr, wr])
    client.add_board(wr)
    client.add_board(make_run("x", 70.0, NOW - 2 * HOUR, category="c2"))
    client.fail_runs.add("wr")  # wr never reaches the ledger

    scanner = _scanner(client, page_size=2)
    result = scanner.scan(0, CUTOFF)

    assert result["keys_processed"] == 2
    assert [c for c in client.calls if c[0] == "leaderboard" and c[1] == "g1|c1||" and c[2] == 200] == [
        ("leaderboard", "g1|c1||", 200)
    ]


def test_runs_without_verify_date_or_partition_are_ignored() -> None:
    bad_date = make_run("nodate", 10.0, None)
    no_cat = make_run("nocat", 10.0, NOW - HOUR)
    no_cat["category"] = {"data": []}
    client = FakeClient(feed=[bad_date, no_cat])

    result = _scanner(client).scan(0, CUTOFF)

    assert result["runs_seen"] == 1
    assert result["records"] == []
    assert client.count("leaderboard") == 0
