"""
Solveur de prix unitaires par propagation iterative.

Algorithme:
1. Les packs "purs" (un seul type d'item) donnent un prix de depart exact.
2. Pour chaque pack mixte, la valeur des items deja connus est deduite du
   prix du pack; le reste est reparti au prorata des quantites entre les
   items encore inconnus.
3. On itere jusqu'a stabilite des prix (epsilon) ou jusqu'au plafond
   d'iterations.

Le decoupage naif (prix du pack / nombre d'unites) suppose que tous les
items se valent, ce qui est faux des qu'un pack melange items chers et items
bon marche.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional

from .confidence import ConfidenceScorer
from .observations import BundleLine, BundleObservation
from ..config import get_config, SolverConfig, QualityConfig

logger = logging.getLogger(__name__)


class InferenceStatus(Enum):
    """Statut d'un calcul."""
    OK = "OK"
    NO_DATA = "NO_DATA"


@dataclass(frozen=True)
class ItemStats:
    """Accumulateur par item (valeur immuable)."""
    total_cost: float = 0.0
    total_quantity: int = 0
    bundle_count: int = 0

    def add(self, cost: float, quantity: int) -> "ItemStats":
        return ItemStats(
            total_cost=self.total_cost + cost,
            total_quantity=self.total_quantity + quantity,
            bundle_count=self.bundle_count + 1,
        )

    @property
    def unit_price(self) -> Optional[float]:
        if self.total_quantity <= 0:
            return None
        return self.total_cost / self.total_quantity


EMPTY_STATS = ItemStats()


@dataclass(frozen=True)
class BundleAnomaly:
    """Anomalie non bloquante detectee sur un pack."""
    reason: str
    bundle_id: Optional[str] = None
    item_type_id: Optional[str] = None


@dataclass(frozen=True)
class ItemPriceEstimate:
    """Prix estime pour un type d'item."""
    item_type_id: str
    unit_price: float
    total_quantity_observed: int
    bundle_count: int
    confidence_score: float
    converged: bool


@dataclass
class InferenceResult:
    """Resultat complet d'un calcul (jamais partiel)."""
    status: InferenceStatus
    prices: dict[str, ItemPriceEstimate] = field(default_factory=dict)
    converged: bool = False
    iterations: int = 0
    bundle_count: int = 0
    pure_bundle_count: int = 0
    unpriced_items: list[str] = field(default_factory=list)
    anomalies: list[BundleAnomaly] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def no_data(self) -> bool:
        return self.status == InferenceStatus.NO_DATA

    @property
    def price_map(self) -> dict[str, float]:
        """Prix unitaires seuls {item_type_id: prix}."""
        return {item_id: est.unit_price for item_id, est in self.prices.items()}

    @classmethod
    def empty(cls, anomalies: Optional[list[BundleAnomaly]] = None) -> "InferenceResult":
        return cls(status=InferenceStatus.NO_DATA, anomalies=list(anomalies or []))


class PriceSolver:
    """Infere un prix unitaire par type d'item a partir des packs observes."""

    def __init__(
        self,
        config: Optional[SolverConfig] = None,
        scorer: Optional[ConfidenceScorer] = None,
        quality: Optional[QualityConfig] = None,
    ):
        if config is None:
            config = get_config().solver
        if quality is None:
            quality = get_config().quality
        self.config = config
        self.quality = quality
        self.scorer = scorer or ConfidenceScorer()

    def solve(self, bundles: Iterable[BundleObservation]) -> InferenceResult:
        """
        Calcule les prix unitaires.

        Args:
            bundles: Observations de packs (deja filtrees par l'appelant)

        Returns:
            InferenceResult complet, ou statut NO_DATA si aucun pack exploitable
        """
        anomalies: list[BundleAnomaly] = []
        pure, mixed = self._sanitize(bundles, anomalies)
        usable = pure + mixed

        if not usable:
            logger.warning("Aucun pack exploitable, pas d'estimation possible")
            return InferenceResult.empty(anomalies)

        seed = self._seed(pure)
        prices: dict[str, float] = {
            item_id: stats.total_cost / stats.total_quantity
            for item_id, stats in seed.items()
        }
        last_stats: dict[str, ItemStats] = dict(seed)

        logger.debug("Prix de depart pour %d items (%d packs purs)", len(seed), len(pure))

        converged = False
        iterations = 0
        for iteration in range(1, self.config.max_iterations + 1):
            iterations = iteration
            accumulator = self._accumulate(mixed, seed, prices)

            new_prices = dict(prices)
            for item_id in sorted(accumulator):
                stats = accumulator[item_id]
                if stats.total_quantity > 0:
                    new_prices[item_id] = stats.total_cost / stats.total_quantity
                    last_stats[item_id] = stats

            max_delta = max(
                (abs(price - prices.get(item_id, 0.0)) for item_id, price in new_prices.items()),
                default=0.0,
            )
            logger.debug("Iteration %d: %d prix, delta max %.6f", iteration, len(new_prices), max_delta)

            prices = new_prices
            if max_delta <= self.config.epsilon:
                converged = True
                break

        if not converged:
            logger.warning(
                "Pas de convergence apres %d iterations (epsilon=%s)",
                iterations, self.config.epsilon,
            )

        estimates = {}
        for item_id in sorted(prices):
            stats = last_stats.get(item_id, EMPTY_STATS)
            estimates[item_id] = ItemPriceEstimate(
                item_type_id=item_id,
                unit_price=prices[item_id],
                total_quantity_observed=stats.total_quantity,
                bundle_count=stats.bundle_count,
                confidence_score=self.scorer.score(stats.bundle_count, stats.total_quantity),
                converged=converged,
            )

        seen_items = {line.item_type_id for b in usable for line in b.lines}
        result = InferenceResult(
            status=InferenceStatus.OK,
            prices=estimates,
            converged=converged,
            iterations=iterations,
            bundle_count=len(usable),
            pure_bundle_count=len(pure),
            unpriced_items=sorted(seen_items - set(estimates)),
            anomalies=anomalies,
            warnings=self._quality_warnings(len(usable), len(pure)),
        )

        logger.info(
            "Prix calcules pour %d items a partir de %d packs (%d iterations, converge=%s)",
            len(estimates), len(usable), iterations, converged,
        )
        return result

    def _sanitize(
        self,
        bundles: Iterable[BundleObservation],
        anomalies: list[BundleAnomaly],
    ) -> tuple[list[BundleObservation], list[BundleObservation]]:
        """
        Ecarte les lignes/packs inexploitables et trie dans un ordre canonique.

        Un pack est pur s'il ne contient qu'un type d'item avant nettoyage:
        une ligne a quantite nulle laisse le pack parmi les packs mixtes.

        Returns:
            (packs purs, packs mixtes)
        """
        pure, mixed = [], []

        for bundle in bundles:
            if bundle.total_price is None or bundle.total_price <= 0:
                anomalies.append(BundleAnomaly("non-positive price", bundle.bundle_id))
                logger.warning("Pack %s ignore: prix non positif (%s)", bundle.bundle_id, bundle.total_price)
                continue

            merged: dict[str, int] = {}
            for line in bundle.lines:
                if line.quantity is None or line.quantity <= 0:
                    anomalies.append(
                        BundleAnomaly("non-positive quantity", bundle.bundle_id, line.item_type_id)
                    )
                    logger.warning(
                        "Ligne ignoree dans le pack %s: %s x%s",
                        bundle.bundle_id, line.item_type_id, line.quantity,
                    )
                    continue
                if line.item_type_id in merged:
                    anomalies.append(
                        BundleAnomaly("duplicate line merged", bundle.bundle_id, line.item_type_id)
                    )
                merged[line.item_type_id] = merged.get(line.item_type_id, 0) + line.quantity

            if not merged:
                anomalies.append(BundleAnomaly("no usable line", bundle.bundle_id))
                continue

            lines = tuple(BundleLine(item_id, merged[item_id]) for item_id in sorted(merged))
            cleaned = BundleObservation(bundle.total_price, lines, bundle.bundle_id)
            declared_items = {line.item_type_id for line in bundle.lines}
            if len(declared_items) == 1:
                pure.append(cleaned)
            else:
                mixed.append(cleaned)

        pure.sort(key=BundleObservation.sort_key)
        mixed.sort(key=BundleObservation.sort_key)
        return pure, mixed

    def _seed(self, pure: list[BundleObservation]) -> dict[str, ItemStats]:
        """Statistiques des packs purs (constantes pendant tout le calcul)."""
        seed: dict[str, ItemStats] = {}
        for bundle in pure:
            line = bundle.lines[0]
            seed[line.item_type_id] = seed.get(line.item_type_id, EMPTY_STATS).add(
                bundle.total_price, line.quantity
            )
        return seed

    def _accumulate(
        self,
        mixed: list[BundleObservation],
        seed: dict[str, ItemStats],
        prices: dict[str, float],
    ) -> dict[str, ItemStats]:
        """Reconstruit l'accumulateur d'une iteration depuis les packs purs."""
        accumulator = dict(seed)

        for bundle in mixed:
            known_value = 0.0
            unknown: list[BundleLine] = []

            for line in bundle.lines:
                price = prices.get(line.item_type_id)
                if price:
                    known_value += price * line.quantity
                else:
                    unknown.append(line)

            if not unknown:
                continue

            remaining_value = max(0.0, bundle.total_price - known_value)
            total_unknown_qty = sum(line.quantity for line in unknown)

            if remaining_value > 0 and total_unknown_qty > 0:
                for line in unknown:
                    cost = remaining_value * line.quantity / total_unknown_qty
                    accumulator[line.item_type_id] = accumulator.get(
                        line.item_type_id, EMPTY_STATS
                    ).add(cost, line.quantity)
            elif self.config.count_unpriced_participation:
                # Pack promo: les items connus couvrent deja le prix, aucun cout
                # negatif ni invente pour les inconnus
                for line in unknown:
                    accumulator[line.item_type_id] = accumulator.get(
                        line.item_type_id, EMPTY_STATS
                    ).add(0.0, line.quantity)

        return accumulator

    def _quality_warnings(self, bundle_count: int, pure_count: int) -> list[str]:
        """Avertissements sur le volume de donnees."""
        warnings = []
        if bundle_count < self.quality.min_bundles:
            warnings.append(
                f"Limited data: only {bundle_count} bundles available, prices may be unstable"
            )
        if pure_count < self.quality.min_pure_bundles:
            warnings.append(
                f"Few baseline bundles: only {pure_count} single-item bundles"
            )
        for message in warnings:
            logger.warning(message)
        return warnings


def infer_item_prices(
    bundles: Iterable[BundleObservation],
    config: Optional[SolverConfig] = None,
) -> InferenceResult:
    """Point d'entree fonctionnel du solveur."""
    return PriceSolver(config=config).solve(bundles)
