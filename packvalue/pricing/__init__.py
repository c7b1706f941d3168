from .observations import BundleLine, BundleObservation, InvalidBundleError
from .confidence import ConfidenceScorer, ConfidenceLevel, score_confidence
from .solver import (
    PriceSolver,
    InferenceResult,
    InferenceStatus,
    ItemPriceEstimate,
    BundleAnomaly,
    infer_item_prices,
)
from .cache import PricingCache
from .valuation import PackGrade, PackValueAnalysis, analyze_pack_value

__all__ = [
    "BundleLine",
    "BundleObservation",
    "InvalidBundleError",
    "ConfidenceScorer",
    "ConfidenceLevel",
    "score_confidence",
    "PriceSolver",
    "InferenceResult",
    "InferenceStatus",
    "ItemPriceEstimate",
    "BundleAnomaly",
    "infer_item_prices",
    "PricingCache",
    "PackGrade",
    "PackValueAnalysis",
    "analyze_pack_value",
]
