from __future__ import annotations

import pytest

from packvalue.pricing import BundleObservation, PackGrade, analyze_pack_value
from packvalue.pricing.valuation import grade_from_percentile, grade_from_ratio, pack_value


PRICES = {"x": 10.0, "y": 5.0}


def test_pack_value_ignores_unknown_items():
    assert pack_value({"x": 2, "y": 1, "z": 9}, PRICES) == pytest.approx(25.0)


def test_grade_from_ratio_without_history():
    analysis = analyze_pack_value({"x": 2}, 10.0, PRICES)

    assert analysis.value_ratio == pytest.approx(2.0)
    assert analysis.grade == PackGrade.SSS
    assert analysis.packs_compared == 0
    assert analysis.similar_packs == []


def test_unpriced_items_are_reported():
    analysis = analyze_pack_value({"x": 1, "z": 2}, 10.0, PRICES)

    assert analysis.unpriced_items == ["z"]
    assert analysis.grade == PackGrade.C


def test_non_positive_pack_price_raises():
    with pytest.raises(ValueError):
        analyze_pack_value({"x": 1}, 0, PRICES)


def test_percentile_against_history():
    history = [
        BundleObservation.from_items(10.0, {"x": 1}, "1"),   # ratio 1.0
        BundleObservation.from_items(20.0, {"x": 1}, "2"),   # ratio 0.5
        BundleObservation.from_items(5.0, {"x": 1}, "3"),    # ratio 2.0
        BundleObservation.from_items(25.0, {"y": 1}, "4"),   # ratio 0.2
    ]

    analysis = analyze_pack_value({"x": 1}, 8.0, PRICES, history)

    # ratio 1.25: seul le pack 3 fait mieux
    assert analysis.packs_compared == 4
    assert analysis.better_than_pct == 75
    assert analysis.grade == PackGrade.A


def test_similar_packs_are_within_tolerance_and_best_first():
    history = [BundleObservation.from_items(float(p), {"x": 1}, str(p)) for p in range(5, 15)]
    history.append(BundleObservation.from_items(10.0, {"x": 5}, "big"))

    analysis = analyze_pack_value({"x": 1}, 10.0, PRICES, history)

    assert len(analysis.similar_packs) == 5
    assert all(8.0 <= s.total_value <= 12.0 for s in analysis.similar_packs)
    ratios = [s.value_ratio for s in analysis.similar_packs]
    assert ratios == sorted(ratios, reverse=True)


@pytest.mark.parametrize(
    "pct, grade",
    [(100, PackGrade.SSS), (95, PackGrade.SSS), (90, PackGrade.S), (70, PackGrade.A),
     (55, PackGrade.B), (30, PackGrade.C), (15, PackGrade.D), (14, PackGrade.F)],
)
def test_grade_from_percentile(pct, grade):
    assert grade_from_percentile(pct) == grade


def test_grade_from_ratio_floor():
    assert grade_from_ratio(0.5) == PackGrade.F
    assert grade_from_ratio(0.7) == PackGrade.D
