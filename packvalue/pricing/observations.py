"""
Observations de packs utilisees par le solveur.
Une observation = un prix paye pour un ensemble d'items (type, quantite).
"""

import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional


class InvalidBundleError(ValueError):
    """Enregistrement de pack invalide (prix, lignes, quantites)."""


@dataclass(frozen=True)
class BundleLine:
    """Une ligne de pack: type d'item + quantite."""
    item_type_id: str
    quantity: int


@dataclass(frozen=True)
class BundleObservation:
    """Transaction observee, immuable pendant un calcul."""
    total_price: float
    lines: tuple[BundleLine, ...]
    bundle_id: Optional[str] = None

    @property
    def is_pure(self) -> bool:
        """Pack contenant un seul type d'item."""
        return len(self.lines) == 1

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.lines)

    def sort_key(self) -> tuple:
        """Cle canonique (independante de l'ordre d'entree)."""
        return (
            tuple(sorted((line.item_type_id, line.quantity) for line in self.lines)),
            self.total_price,
            self.bundle_id or "",
        )

    @classmethod
    def from_items(
        cls,
        total_price: float,
        items: Mapping[str, int],
        bundle_id: Optional[str] = None,
    ) -> "BundleObservation":
        """Construit une observation depuis un dict {item_type_id: quantite}."""
        lines = tuple(BundleLine(item_id, qty) for item_id, qty in items.items())
        return cls(total_price=total_price, lines=lines, bundle_id=bundle_id)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "BundleObservation":
        """
        Valide et construit une observation depuis un enregistrement externe.

        Format attendu:
            {"price": 15.0, "items": [{"item_type_id": "x", "quantity": 2}], "id": ...}

        Raises:
            InvalidBundleError: prix non positif, aucune ligne, quantite
                invalide ou item duplique
        """
        if not isinstance(record, Mapping):
            raise InvalidBundleError(f"Enregistrement illisible: {record!r}")

        price = validate_price(record.get("price"))
        lines = validate_lines(item_pairs(record.get("items")))

        bundle_id = record.get("id")
        return cls(
            total_price=price,
            lines=lines,
            bundle_id=str(bundle_id) if bundle_id is not None else None,
        )


def validate_price(value: Any) -> float:
    """Prix de pack: nombre fini strictement positif."""
    if isinstance(value, bool):
        raise InvalidBundleError(f"Prix illisible: {value!r}")
    try:
        price = float(value)
    except (TypeError, ValueError):
        raise InvalidBundleError(f"Prix illisible: {value!r}")

    if not math.isfinite(price):
        raise InvalidBundleError(f"Prix non fini: {value!r}")
    if price <= 0:
        raise InvalidBundleError(f"Prix non positif: {price}")
    return price


def item_pairs(raw_items: Any) -> list[tuple[Any, Any]]:
    """Couples (item_type_id, quantite) d'une liste d'items [{item_type_id, quantity}]."""
    if not raw_items:
        raise InvalidBundleError("Pack sans items")
    if isinstance(raw_items, (str, bytes, Mapping)) or not isinstance(raw_items, Iterable):
        raise InvalidBundleError(f"Liste d'items illisible: {raw_items!r}")

    pairs = []
    for item in raw_items:
        if not isinstance(item, Mapping):
            raise InvalidBundleError(f"Item illisible: {item!r}")
        pairs.append((item.get("item_type_id"), item.get("quantity")))
    return pairs


def validate_lines(pairs: Iterable[tuple[Any, Any]]) -> tuple[BundleLine, ...]:
    """Valide une suite de couples (item_type_id, quantite)."""
    lines = []
    seen = set()

    for item_type_id, quantity in pairs:
        if not item_type_id:
            raise InvalidBundleError("Ligne sans item_type_id")

        item_type_id = str(item_type_id)
        if item_type_id in seen:
            raise InvalidBundleError(f"Item duplique dans le pack: {item_type_id}")

        if isinstance(quantity, bool) or not isinstance(quantity, (int, float)):
            raise InvalidBundleError(f"Quantite illisible pour {item_type_id}: {quantity!r}")
        if not math.isfinite(quantity):
            raise InvalidBundleError(f"Quantite non finie pour {item_type_id}: {quantity}")
        if quantity != int(quantity) or quantity <= 0:
            raise InvalidBundleError(f"Quantite invalide pour {item_type_id}: {quantity}")

        seen.add(item_type_id)
        lines.append(BundleLine(item_type_id, int(quantity)))

    if not lines:
        raise InvalidBundleError("Pack sans items")

    return tuple(lines)
