from __future__ import annotations

from datetime import date

import pytest

from packvalue.config import TrackingConfig
from packvalue.models import PriceSnapshot, PriceTrend
from packvalue.pricing import BundleObservation, infer_item_prices
from packvalue.tracking import SnapshotTracker


DAY1 = date(2024, 6, 1)
DAY2 = date(2024, 6, 2)
DAY3 = date(2024, 6, 3)


def observations(x_price):
    return [
        BundleObservation.from_items(x_price, {"x": 1}, "1"),
        BundleObservation.from_items(15.0, {"x": 1, "y": 1}, "2"),
    ]


@pytest.fixture
def tracker(session):
    return SnapshotTracker(session, TrackingConfig(trend_threshold_pct=2.0, history_days=30))


def take(tracker, as_of, x_price, force=False):
    obs = observations(x_price)
    return tracker.create_daily_snapshot(infer_item_prices(obs), obs, as_of=as_of, force=force)


def test_snapshot_stores_prices_and_market_metrics(tracker):
    snapshot = take(tracker, DAY1, 10.0)

    assert snapshot.as_of_date == DAY1
    assert snapshot.bundles_analyzed == 2
    assert snapshot.pure_bundles == 1
    assert snapshot.converged is True
    assert snapshot.price_for("x").unit_price == pytest.approx(10.0)
    assert snapshot.price_for("y").unit_price == pytest.approx(5.0)
    assert snapshot.price_for("y").trend == PriceTrend.STABLE
    assert snapshot.price_for("y").price_change_pct is None

    # 10/1 et 15/2
    assert snapshot.cheapest_unit_cost == pytest.approx(7.5)
    assert snapshot.median_unit_cost == pytest.approx(8.75)
    assert snapshot.highest_unit_cost == pytest.approx(10.0)

    meta = snapshot.get_raw_meta()
    assert meta["previous_date"] is None
    assert len(meta["warnings"]) == 2


def test_snapshot_is_idempotent_per_day(tracker, session):
    first = take(tracker, DAY1, 10.0)
    again = take(tracker, DAY1, 12.0)

    assert again is first
    assert session.query(PriceSnapshot).count() == 1
    assert again.price_for("x").unit_price == pytest.approx(10.0)


def test_force_replaces_snapshot(tracker, session):
    take(tracker, DAY1, 10.0)
    replaced = take(tracker, DAY1, 12.0, force=True)

    assert session.query(PriceSnapshot).count() == 1
    assert replaced.price_for("x").unit_price == pytest.approx(12.0)


def test_trend_against_previous_snapshot(tracker):
    take(tracker, DAY1, 10.0)
    snapshot = take(tracker, DAY2, 11.0)

    x = snapshot.price_for("x")
    y = snapshot.price_for("y")
    assert x.price_change_pct == pytest.approx(10.0)
    assert x.trend == PriceTrend.UP
    assert y.price_change_pct == pytest.approx(-20.0)
    assert y.trend == PriceTrend.DOWN
    assert snapshot.get_raw_meta()["previous_date"] == DAY1.isoformat()


def test_small_change_is_stable(tracker):
    take(tracker, DAY1, 10.0)
    snapshot = take(tracker, DAY2, 10.1)

    assert snapshot.price_for("x").trend == PriceTrend.STABLE


def test_no_data_creates_nothing(tracker, session):
    assert tracker.create_daily_snapshot(infer_item_prices([]), as_of=DAY1) is None
    assert session.query(PriceSnapshot).count() == 0


def test_item_history_newest_first(tracker):
    take(tracker, DAY1, 10.0)
    take(tracker, DAY2, 11.0)
    take(tracker, DAY3, 11.0)

    history = tracker.get_item_history("y", today=DAY3)

    assert [h["date"] for h in history] == [DAY3, DAY2, DAY1]
    assert history[0]["trend"] == "STABLE"
    assert history[1]["trend"] == "DOWN"
    assert all(h["market_rank"] == 1 for h in history)
    assert tracker.get_item_history("x", today=DAY3)[0]["market_rank"] == 2

    assert len(tracker.get_item_history("y", days=1, today=DAY3)) == 2
    assert tracker.get_item_history("unknown", today=DAY3) == []


def test_tracking_stats(tracker):
    assert tracker.get_tracking_stats() is None

    take(tracker, DAY1, 10.0)
    take(tracker, DAY3, 11.0)

    stats = tracker.get_tracking_stats()
    assert stats["total_snapshots"] == 2
    assert stats["start"] == DAY1
    assert stats["end"] == DAY3
    assert stats["tracking_days"] == 2
    assert stats["average_bundles"] == pytest.approx(2.0)
