from __future__ import annotations

import random

import pytest

from packvalue.config import QualityConfig, SolverConfig
from packvalue.pricing import (
    BundleLine,
    BundleObservation,
    InferenceStatus,
    PriceSolver,
    infer_item_prices,
    score_confidence,
)


def bundle(price, bundle_id=None, **items):
    return BundleObservation.from_items(price, items, bundle_id=bundle_id)


def test_pure_bundles_give_exact_average():
    result = infer_item_prices([
        bundle(10, X=2),
        bundle(14, X=2),
        bundle(3, Y=1),
    ])

    assert result.status == InferenceStatus.OK
    assert result.converged is True
    assert result.prices["X"].unit_price == pytest.approx(24 / 4)
    assert result.prices["Y"].unit_price == pytest.approx(3.0)
    assert result.prices["X"].bundle_count == 2
    assert result.prices["X"].total_quantity_observed == 4
    assert result.pure_bundle_count == 3


def test_residual_value_goes_to_unknown_item():
    result = infer_item_prices([
        bundle(10, X=1),
        bundle(15, X=1, Y=1),
    ])

    assert result.converged is True
    assert result.prices["X"].unit_price == pytest.approx(10.0)
    assert result.prices["Y"].unit_price == pytest.approx(5.0)
    assert result.iterations == 2


def test_residual_value_is_divided_by_quantity():
    result = infer_item_prices([
        bundle(20, X=2),
        bundle(30, X=1, Y=4),
    ])

    assert result.converged is True
    assert result.prices["X"].unit_price == pytest.approx(10.0)
    assert result.prices["Y"].unit_price == pytest.approx((30 - 10) / 4)
    assert result.prices["Y"].total_quantity_observed == 4
    assert result.prices["Y"].bundle_count == 1


def test_mixed_bundle_without_known_items_splits_by_quantity():
    result = infer_item_prices([bundle(12, X=1, Y=3)])

    assert result.prices["X"].unit_price == pytest.approx(3.0)
    assert result.prices["Y"].unit_price == pytest.approx(3.0)
    assert result.pure_bundle_count == 0


def test_discount_bundle_never_creates_negative_price():
    result = infer_item_prices([
        bundle(10, X=1),
        bundle(8, X=1, Y=3),
    ])

    y = result.prices["Y"]
    assert y.unit_price == 0.0
    assert y.bundle_count == 1
    assert y.total_quantity_observed == 3
    assert y.confidence_score == pytest.approx(score_confidence(1, 3))


def test_discount_bundle_still_counts_alongside_real_evidence():
    result = infer_item_prices([
        bundle(10, X=1),
        bundle(8, X=1, Y=3),
        bundle(16, X=1, Y=2),
    ])

    y = result.prices["Y"]
    assert y.unit_price == pytest.approx(6 / 5)
    assert y.unit_price >= 0
    assert y.bundle_count == 2
    assert result.converged is True


def test_unpriced_participation_can_be_disabled():
    solver = PriceSolver(config=SolverConfig(count_unpriced_participation=False))
    result = solver.solve([
        bundle(10, X=1),
        bundle(8, X=1, Y=3),
    ])

    assert "Y" not in result.prices
    assert result.unpriced_items == ["Y"]
    assert result.prices["X"].unit_price == pytest.approx(10.0)


def test_empty_input_reports_no_data():
    result = infer_item_prices([])

    assert result.no_data
    assert result.status == InferenceStatus.NO_DATA
    assert result.prices == {}
    assert result.converged is False


def test_only_invalid_bundles_reports_no_data():
    result = infer_item_prices([
        BundleObservation(-5.0, (BundleLine("X", 1),), "neg"),
        BundleObservation(5.0, (BundleLine("X", 0),), "zero"),
    ])

    assert result.no_data
    reasons = sorted(a.reason for a in result.anomalies)
    assert reasons == ["no usable line", "non-positive price", "non-positive quantity"]


def test_non_positive_quantity_line_is_skipped():
    result = infer_item_prices([
        bundle(10, X=1),
        BundleObservation(
            15.0,
            (BundleLine("X", 1), BundleLine("Y", 1), BundleLine("Z", 0)),
            "b2",
        ),
    ])

    assert result.prices["Y"].unit_price == pytest.approx(5.0)
    assert "Z" not in result.prices
    assert len(result.anomalies) == 1
    anomaly = result.anomalies[0]
    assert anomaly.reason == "non-positive quantity"
    assert anomaly.bundle_id == "b2"
    assert anomaly.item_type_id == "Z"


def test_result_is_independent_of_input_order():
    bundles = [
        bundle(10, X=1),
        bundle(15, X=1, Y=1),
        bundle(30, Y=2, Z=4),
        bundle(7.3, Z=1),
        bundle(9.1, W=3, Z=1),
        bundle(12.7, X=2),
        bundle(41.9, V=7, W=2, X=1),
    ]
    reference = infer_item_prices(bundles)

    rng = random.Random(7)
    for _ in range(5):
        shuffled = list(bundles)
        rng.shuffle(shuffled)
        other = infer_item_prices(shuffled)
        assert other.prices == reference.prices
        assert other.converged == reference.converged
        assert other.iterations == reference.iterations


def test_running_twice_gives_identical_output():
    bundles = [bundle(10, X=1), bundle(15, X=1, Y=1), bundle(4, Y=1, Z=2)]

    assert infer_item_prices(bundles).prices == infer_item_prices(bundles).prices


def test_iteration_cap_returns_estimates_without_convergence():
    solver = PriceSolver(config=SolverConfig(max_iterations=1))
    result = solver.solve([
        bundle(10, X=1),
        bundle(15, X=1, Y=1),
    ])

    assert result.status == InferenceStatus.OK
    assert result.converged is False
    assert result.iterations == 1
    assert result.prices["Y"].unit_price == pytest.approx(5.0)
    assert all(not est.converged for est in result.prices.values())


def test_estimates_carry_confidence_and_run_flag():
    result = infer_item_prices([
        bundle(10, X=1),
        bundle(11, X=1),
        bundle(15, X=1, Y=1),
    ])

    x = result.prices["X"]
    assert x.confidence_score == pytest.approx(score_confidence(2, 2))
    assert x.converged is True
    assert result.price_map == {
        "X": pytest.approx(10.5),
        "Y": pytest.approx(4.5),
    }


def test_small_datasets_produce_quality_warnings():
    result = infer_item_prices([bundle(10, X=1)])
    assert len(result.warnings) == 2

    quiet = PriceSolver(quality=QualityConfig(min_bundles=0, min_pure_bundles=0))
    assert quiet.solve([bundle(10, X=1)]).warnings == []


def test_input_bundles_are_not_mutated():
    observed = BundleObservation(15.0, (BundleLine("Y", 1), BundleLine("X", 1)), "b")
    infer_item_prices([bundle(10, X=1), observed])

    assert observed.lines == (BundleLine("Y", 1), BundleLine("X", 1))


def test_zero_quantity_line_keeps_bundle_mixed():
    result = infer_item_prices([
        bundle(4, X=1),
        BundleObservation(10.0, (BundleLine("X", 1), BundleLine("Z", 0)), "b2"),
    ])

    # le second pack n'apporte rien: X est deja connu par le pack pur
    assert result.pure_bundle_count == 1
    assert result.bundle_count == 2
    assert result.prices["X"].unit_price == pytest.approx(4.0)
    assert result.prices["X"].bundle_count == 1
    assert [a.reason for a in result.anomalies] == ["non-positive quantity"]


def test_zero_quantity_line_bundle_still_prices_its_other_item():
    result = infer_item_prices([
        BundleObservation(10.0, (BundleLine("X", 2), BundleLine("Z", 0)), "b1"),
    ])

    assert result.pure_bundle_count == 0
    assert result.prices["X"].unit_price == pytest.approx(5.0)
