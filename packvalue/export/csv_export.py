"""
Export des prix estimes en CSV.
"""

from pathlib import Path
from typing import Mapping, Optional

import pandas as pd

from ..models import ItemType
from ..pricing import ConfidenceScorer, InferenceResult, ItemPriceEstimate


COLUMNS = [
    "item_type_id",
    "name",
    "category",
    "unit_price",
    "confidence",
    "confidence_level",
    "bundle_count",
    "total_quantity",
    "converged",
]


class PriceExporter:
    """Exporte les prix unitaires en CSV."""

    def export(
        self,
        result: InferenceResult,
        output_path: Path,
        catalog: Optional[Mapping[str, ItemType]] = None,
        min_confidence: Optional[float] = None,
    ) -> dict:
        """
        Exporte les prix en CSV.

        Args:
            result: Resultat du solveur
            output_path: Chemin du fichier CSV
            catalog: Types d'items pour les noms/categories (optionnel)
            min_confidence: Score minimum de confiance

        Returns:
            Stats d'export {exported, skipped, total}
        """
        catalog = catalog or {}
        stats = {"exported": 0, "skipped": 0, "total": len(result.prices)}

        rows = []
        for estimate in result.prices.values():
            if min_confidence is not None and estimate.confidence_score < min_confidence:
                stats["skipped"] += 1
                continue
            rows.append(self._build_row(estimate, catalog.get(estimate.item_type_id)))
            stats["exported"] += 1

        df = pd.DataFrame(rows, columns=COLUMNS)

        if not df.empty:
            df = df.sort_values(["unit_price", "item_type_id"], ascending=[False, True])
            df["unit_price"] = df["unit_price"].round(6)
            df["confidence"] = df["confidence"].round(1)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(output_path, index=False, encoding="utf-8")

        return stats

    def _build_row(self, estimate: ItemPriceEstimate, item_type: Optional[ItemType]) -> dict:
        """Construit une ligne pour le CSV."""
        return {
            "item_type_id": estimate.item_type_id,
            "name": item_type.name if item_type else estimate.item_type_id,
            "category": (item_type.category or "") if item_type else "",
            "unit_price": estimate.unit_price,
            "confidence": estimate.confidence_score,
            "confidence_level": ConfidenceScorer.level(estimate.confidence_score).value,
            "bundle_count": estimate.bundle_count,
            "total_quantity": estimate.total_quantity_observed,
            "converged": estimate.converged,
        }
