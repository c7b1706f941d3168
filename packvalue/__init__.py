"""
packvalue - estimation du prix unitaire des items a partir des packs vendus.
"""

from .pricing import (
    BundleObservation,
    InferenceResult,
    ItemPriceEstimate,
    infer_item_prices,
    score_confidence,
)

__version__ = "0.1.0"

__all__ = [
    "BundleObservation",
    "InferenceResult",
    "ItemPriceEstimate",
    "infer_item_prices",
    "score_confidence",
]
