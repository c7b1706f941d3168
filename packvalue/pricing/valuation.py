"""
Evaluation d'un pack par rapport aux prix estimes et a l'historique.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping, Optional

from .observations import BundleObservation


class PackGrade(Enum):
    """Note d'un pack."""
    SSS = "SSS"
    S = "S"
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"


# Seuils sur le percentile (% des packs historiques battus)
PERCENTILE_GRADES = [
    (95, PackGrade.SSS),  # Top 5%
    (85, PackGrade.S),
    (70, PackGrade.A),
    (50, PackGrade.B),
    (30, PackGrade.C),
    (15, PackGrade.D),
]

# Seuils sur le ratio valeur/prix (sans historique)
RATIO_GRADES = [
    (2.0, PackGrade.SSS),  # 200%+ de valeur
    (1.5, PackGrade.S),
    (1.3, PackGrade.A),
    (1.1, PackGrade.B),
    (0.9, PackGrade.C),
    (0.7, PackGrade.D),
]

SIMILAR_VALUE_TOLERANCE = 0.20
MAX_SIMILAR_PACKS = 5


@dataclass
class SimilarPack:
    """Pack historique de valeur comparable."""
    items: dict[str, int]
    price: float
    total_value: float
    value_ratio: float


@dataclass
class PackValueAnalysis:
    """Resultat de l'evaluation d'un pack."""
    grade: PackGrade
    total_value: float
    value_ratio: float
    better_than_pct: int = 0
    packs_compared: int = 0
    similar_packs: list[SimilarPack] = field(default_factory=list)
    unpriced_items: list[str] = field(default_factory=list)


def pack_value(items: Mapping[str, int], prices: Mapping[str, float]) -> float:
    """Valeur d'un pack au prix estime (items inconnus = 0)."""
    return sum(prices.get(item_id, 0.0) * qty for item_id, qty in sorted(items.items()))


def grade_from_percentile(better_than_pct: float) -> PackGrade:
    for threshold, grade in PERCENTILE_GRADES:
        if better_than_pct >= threshold:
            return grade
    return PackGrade.F


def grade_from_ratio(value_ratio: float) -> PackGrade:
    for threshold, grade in RATIO_GRADES:
        if value_ratio >= threshold:
            return grade
    return PackGrade.F


def analyze_pack_value(
    items: Mapping[str, int],
    pack_price: float,
    prices: Mapping[str, float],
    history: Optional[Iterable[BundleObservation]] = None,
) -> PackValueAnalysis:
    """
    Note un pack en comparant sa valeur a son prix et aux packs historiques.

    Args:
        items: {item_type_id: quantite}
        pack_price: Prix demande pour le pack
        prices: Prix unitaires estimes
        history: Packs historiques pour le classement (optionnel)

    Returns:
        PackValueAnalysis

    Raises:
        ValueError: si pack_price n'est pas positif
    """
    if pack_price <= 0:
        raise ValueError(f"Prix de pack non positif: {pack_price}")

    total_value = pack_value(items, prices)
    value_ratio = total_value / pack_price
    unpriced = sorted(item_id for item_id in items if item_id not in prices)

    ratios = []
    for bundle in history or []:
        if bundle.total_price <= 0:
            continue
        bundle_items = {line.item_type_id: line.quantity for line in bundle.lines}
        bundle_value = pack_value(bundle_items, prices)
        ratios.append((bundle_value / bundle.total_price, bundle_value, bundle, bundle_items))

    if not ratios:
        return PackValueAnalysis(
            grade=grade_from_ratio(value_ratio),
            total_value=total_value,
            value_ratio=value_ratio,
            unpriced_items=unpriced,
        )

    # Meilleurs rapports en premier
    ratios.sort(key=lambda r: (-r[0], r[2].sort_key()))

    better = sum(1 for ratio, *_ in ratios if ratio > value_ratio)
    better_than_pct = round((len(ratios) - better) / len(ratios) * 100)

    low, high = total_value * (1 - SIMILAR_VALUE_TOLERANCE), total_value * (1 + SIMILAR_VALUE_TOLERANCE)
    similar = [
        SimilarPack(
            items=bundle_items,
            price=bundle.total_price,
            total_value=bundle_value,
            value_ratio=ratio,
        )
        for ratio, bundle_value, bundle, bundle_items in ratios
        if low <= bundle_value <= high
    ][:MAX_SIMILAR_PACKS]

    return PackValueAnalysis(
        grade=grade_from_percentile(better_than_pct),
        total_value=total_value,
        value_ratio=value_ratio,
        better_than_pct=better_than_pct,
        packs_compared=len(ratios),
        similar_packs=similar,
        unpriced_items=unpriced,
    )
