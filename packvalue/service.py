"""
Service de prix: store de packs + solveur + cache.
Les ecrans et commandes passent par ici pour partager les memes prix.
"""

import logging
from datetime import datetime
from typing import Optional

from .config import get_config, AppConfig
from .models import BundleStatus
from .pricing import PriceSolver, PricingCache, ConfidenceScorer, InferenceResult
from .store import BundleStore

logger = logging.getLogger(__name__)


class PricingService:
    """Calcule (ou relit en cache) les prix pour un jeu de packs."""

    def __init__(
        self,
        store: BundleStore,
        cache: Optional[PricingCache] = None,
        config: Optional[AppConfig] = None,
    ):
        if config is None:
            config = get_config()
        self.config = config
        self.store = store
        self.cache = cache if cache is not None else PricingCache(config.cache.max_age_seconds)
        self.solver = PriceSolver(
            config=config.solver,
            scorer=ConfidenceScorer(config.confidence),
            quality=config.quality,
        )

    def get_prices(
        self,
        status: Optional[BundleStatus] = BundleStatus.APPROVED,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        force_refresh: bool = False,
    ) -> InferenceResult:
        """
        Retourne les prix pour le jeu de packs demande.

        Args:
            status: Statut des packs retenus
            since: Date de soumission minimum
            until: Date de soumission maximum
            force_refresh: Ignorer le cache

        Returns:
            InferenceResult (statut NO_DATA si aucun pack)
        """
        key = self.store.fingerprint(status, since, until)

        if not force_refresh:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Prix relus depuis le cache (%s)", key)
                return cached

        observations = self.store.load_observations(status, since, until)
        result = self.solver.solve(observations)
        self.cache.put(key, result)
        return result

    def invalidate(self) -> None:
        """A appeler apres acceptation de nouveaux packs."""
        self.cache.invalidate()
        logger.info("Cache de prix vide")
