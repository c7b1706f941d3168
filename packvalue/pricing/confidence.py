"""
Calcul du score de confiance pour les prix d'items.
"""

from enum import Enum
from typing import Optional

from ..config import get_config, ConfidenceConfig


class ConfidenceLevel(Enum):
    """Niveau de confiance affiche."""
    EXCELLENT = "Excellent"
    HIGH = "High"
    GOOD = "Good"
    FAIR = "Fair"
    LOW = "Low"


class ConfidenceScorer:
    """
    Calcule un score de confiance (0-100) pour un prix infere.

    Chaque pack distinct pese lourd (corroboration), la quantite brute pese
    peu et est plafonnee: un seul pack avec une quantite enorme ne doit pas
    gonfler la confiance autant que plusieurs packs independants.
    """

    def __init__(self, config: Optional[ConfidenceConfig] = None):
        if config is None:
            config = get_config().confidence
        self.config = config

    def score(self, bundle_count: int, total_quantity: float) -> float:
        """
        Score = clamp(0, max, bundles * w_b + min(qty, cap) * w_q)

        Args:
            bundle_count: Nombre de packs ayant contribue
            total_quantity: Quantite totale observee

        Returns:
            Score entre 0 et max_score
        """
        quantity = min(max(total_quantity, 0), self.config.quantity_cap)
        raw = bundle_count * self.config.bundle_weight + quantity * self.config.quantity_weight
        return min(max(raw, 0.0), self.config.max_score)

    @staticmethod
    def level(score: float) -> ConfidenceLevel:
        """Niveau qualitatif pour l'affichage."""
        if score >= 85:
            return ConfidenceLevel.EXCELLENT
        if score >= 70:
            return ConfidenceLevel.HIGH
        if score >= 50:
            return ConfidenceLevel.GOOD
        if score >= 30:
            return ConfidenceLevel.FAIR
        return ConfidenceLevel.LOW


def score_confidence(bundle_count: int, total_quantity: float) -> float:
    """Score de confiance avec les poids par defaut."""
    return ConfidenceScorer(ConfidenceConfig()).score(bundle_count, total_quantity)
