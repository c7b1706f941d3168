"""
Snapshots quotidiens des prix estimes.
Permet de suivre l'evolution des prix et leur tendance jour apres jour.
"""

import logging
from dataclasses import asdict
from datetime import date, timedelta
from typing import Iterable, Optional

import numpy as np
from sqlalchemy.orm import Session

from ..models import PriceSnapshot, SnapshotItemPrice, PriceTrend
from ..config import get_config, TrackingConfig
from ..pricing import BundleObservation, InferenceResult

logger = logging.getLogger(__name__)


class SnapshotTracker:
    """Cree et relit les snapshots de prix."""

    def __init__(self, session: Session, config: Optional[TrackingConfig] = None):
        """
        Args:
            session: Session SQLAlchemy
            config: Parametres de suivi (defaut: depuis config)
        """
        self.session = session
        self.config = config or get_config().tracking

    def get_snapshot(self, as_of: date) -> Optional[PriceSnapshot]:
        return self.session.query(PriceSnapshot).filter(
            PriceSnapshot.as_of_date == as_of
        ).first()

    def get_previous(self, as_of: date) -> Optional[PriceSnapshot]:
        """Dernier snapshot strictement anterieur a la date."""
        return self.session.query(PriceSnapshot).filter(
            PriceSnapshot.as_of_date < as_of
        ).order_by(PriceSnapshot.as_of_date.desc()).first()

    def create_daily_snapshot(
        self,
        result: InferenceResult,
        observations: Iterable[BundleObservation] = (),
        as_of: Optional[date] = None,
        force: bool = False,
    ) -> Optional[PriceSnapshot]:
        """
        Enregistre le snapshot du jour (un seul par date).

        Args:
            result: Resultat du solveur
            observations: Packs utilises (metriques de marche)
            as_of: Date du snapshot (defaut: aujourd'hui)
            force: Remplacer le snapshot existant

        Returns:
            Le snapshot, ou None si le resultat ne contient pas de donnees
        """
        as_of = as_of or date.today()

        existing = self.get_snapshot(as_of)
        if existing and not force:
            logger.info("Snapshot deja present pour %s", as_of)
            return existing

        if result.no_data:
            logger.warning("Pas de donnees, snapshot du %s non cree", as_of)
            return None

        if existing:
            self.session.delete(existing)
            self.session.flush()

        previous = self.get_previous(as_of)
        previous_prices = {}
        if previous:
            previous_prices = {p.item_type_id: p.unit_price for p in previous.item_prices}

        snapshot = PriceSnapshot(
            as_of_date=as_of,
            bundles_analyzed=result.bundle_count,
            pure_bundles=result.pure_bundle_count,
            converged=result.converged,
            iterations=result.iterations,
        )

        unit_costs = [
            b.total_price / b.total_quantity
            for b in observations
            if b.total_price > 0 and b.total_quantity > 0
        ]
        if unit_costs:
            costs = np.array(unit_costs)
            snapshot.cheapest_unit_cost = float(np.min(costs))
            snapshot.median_unit_cost = float(np.median(costs))
            snapshot.highest_unit_cost = float(np.max(costs))

        for item_id, estimate in result.prices.items():
            change = self._change_pct(previous_prices.get(item_id), estimate.unit_price)
            snapshot.item_prices.append(SnapshotItemPrice(
                item_type_id=item_id,
                unit_price=estimate.unit_price,
                confidence=estimate.confidence_score,
                bundle_count=estimate.bundle_count,
                total_quantity=estimate.total_quantity_observed,
                price_change_pct=change,
                trend=self._trend(change),
            ))

        snapshot.set_raw_meta({
            "anomalies": [asdict(a) for a in result.anomalies],
            "warnings": result.warnings,
            "unpriced_items": result.unpriced_items,
            "previous_date": previous.as_of_date if previous else None,
        })

        self.session.add(snapshot)
        self.session.flush()

        logger.info("Snapshot du %s cree: %d items", as_of, len(snapshot.item_prices))
        return snapshot

    def _change_pct(self, previous: Optional[float], current: float) -> Optional[float]:
        """Variation en pourcentage vs snapshot precedent."""
        if previous is None or previous <= 0:
            return None
        return (current - previous) / previous * 100

    def _trend(self, change_pct: Optional[float]) -> PriceTrend:
        if change_pct is None:
            return PriceTrend.STABLE
        if change_pct > self.config.trend_threshold_pct:
            return PriceTrend.UP
        if change_pct < -self.config.trend_threshold_pct:
            return PriceTrend.DOWN
        return PriceTrend.STABLE

    def get_item_history(
        self,
        item_type_id: str,
        days: Optional[int] = None,
        today: Optional[date] = None,
    ) -> list[dict]:
        """
        Historique d'un item, du plus recent au plus ancien.

        Returns:
            Liste de dicts: date, price, confidence, trend, market_rank
        """
        days = days or self.config.history_days
        today = today or date.today()
        start_date = today - timedelta(days=days)

        snapshots = self.session.query(PriceSnapshot).filter(
            PriceSnapshot.as_of_date >= start_date
        ).order_by(PriceSnapshot.as_of_date.desc()).all()

        history = []
        for snapshot in snapshots:
            item_price = snapshot.price_for(item_type_id)
            if item_price is None:
                continue

            # Rang par prix croissant parmi les items du jour
            ranked = sorted(snapshot.item_prices, key=lambda p: (p.unit_price, p.item_type_id))
            rank = next(i for i, p in enumerate(ranked, 1) if p.item_type_id == item_type_id)

            history.append({
                "date": snapshot.as_of_date,
                "price": item_price.unit_price,
                "confidence": item_price.confidence,
                "trend": item_price.trend.value,
                "change_pct": item_price.price_change_pct,
                "market_rank": rank,
            })

        return history

    def get_tracking_stats(self) -> Optional[dict]:
        """
        Resume du suivi.

        Returns:
            Dict avec: total_snapshots, start, end, tracking_days,
            average_bundles (30 derniers snapshots), ou None
        """
        total = self.session.query(PriceSnapshot).count()
        if total == 0:
            return None

        first = self.session.query(PriceSnapshot).order_by(PriceSnapshot.as_of_date).first()
        recent = self.session.query(PriceSnapshot).order_by(
            PriceSnapshot.as_of_date.desc()
        ).limit(30).all()
        last = recent[0]

        return {
            "total_snapshots": total,
            "start": first.as_of_date,
            "end": last.as_of_date,
            "tracking_days": (last.as_of_date - first.as_of_date).days,
            "average_bundles": float(np.mean([s.bundles_analyzed for s in recent])),
        }
