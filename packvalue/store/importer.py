"""
Importeur de packs depuis un fichier JSON ou YAML vers la base de donnees.

Format:
    item_types:
      - {id: sacred_shard, name: Sacred Shard, category: shards}
    bundles:
      - {name: Starter, price: 4.99, status: APPROVED,
         items: [{item_type_id: sacred_shard, quantity: 1}]}
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml
from sqlalchemy.orm import Session

from .bundle_store import BundleStore
from ..models import BundleStatus, ItemType
from ..pricing.observations import InvalidBundleError, item_pairs, validate_lines, validate_price

logger = logging.getLogger(__name__)


class BundleImporter:
    """Importe packs et catalogue d'items."""

    def __init__(self, session: Session, source: str = "import"):
        self.session = session
        self.store = BundleStore(session)
        self.source = source

    def import_file(self, path: Path) -> dict:
        """
        Importe un fichier JSON/YAML.

        Returns:
            Stats {created, rejected, item_types, errors}
        """
        data = self._read(path)
        if isinstance(data, list):
            data = {"bundles": data}
        if not isinstance(data, dict):
            raise InvalidBundleError(f"Contenu non reconnu dans {path}")

        stats = {"created": 0, "rejected": 0, "item_types": 0, "errors": []}

        for index, record in enumerate(data.get("item_types") or []):
            try:
                self._upsert_item_type(record)
                stats["item_types"] += 1
            except InvalidBundleError as e:
                stats["errors"].append((f"item_types[{index}]", str(e)))
                logger.warning("Type d'item #%d ignore: %s", index, e)

        for index, record in enumerate(data.get("bundles") or []):
            try:
                self.import_record(record)
                stats["created"] += 1
            except InvalidBundleError as e:
                stats["rejected"] += 1
                stats["errors"].append((index, str(e)))
                logger.warning("Pack #%d rejete: %s", index, e)

        self.session.flush()
        logger.info(
            "Import %s: %d packs crees, %d rejetes, %d types d'items",
            path, stats["created"], stats["rejected"], stats["item_types"],
        )
        return stats

    def import_record(self, record: Mapping[str, Any]):
        """
        Valide et enregistre un pack.

        Raises:
            InvalidBundleError: enregistrement, prix, items ou champs invalides
        """
        if not isinstance(record, Mapping):
            raise InvalidBundleError(f"Enregistrement illisible: {record!r}")

        price = validate_price(record.get("price"))
        lines = validate_lines(item_pairs(record.get("items")))

        return self.store.add_bundle(
            price=price,
            items={line.item_type_id: line.quantity for line in lines},
            name=record.get("name"),
            status=self._parse_status(record.get("status")),
            source=record.get("source") or self.source,
            submitted_at=self._parse_datetime(record.get("submitted_at")),
        )

    def _read(self, path: Path) -> Any:
        with open(path, encoding="utf-8") as f:
            if path.suffix.lower() == ".json":
                return json.load(f)
            return yaml.safe_load(f) or {}

    def _upsert_item_type(self, record: Mapping[str, Any]) -> ItemType:
        """Cree ou met a jour un type d'item."""
        if not isinstance(record, Mapping) or not record.get("id"):
            raise InvalidBundleError(f"Type d'item sans id: {record!r}")

        item_id = str(record["id"])
        existing = self.session.get(ItemType, item_id)

        if existing:
            existing.name = record.get("name") or existing.name
            existing.category = record.get("category", existing.category)
            return existing

        item_type = ItemType(
            id=item_id,
            name=record.get("name") or item_id,
            category=record.get("category"),
        )
        self.session.add(item_type)
        return item_type

    @staticmethod
    def _parse_status(value: Optional[str]) -> BundleStatus:
        if not value:
            return BundleStatus.APPROVED
        try:
            return BundleStatus(str(value).upper())
        except ValueError:
            raise InvalidBundleError(f"Statut inconnu: {value}")

    @staticmethod
    def _parse_datetime(value: Any) -> Optional[datetime]:
        if value is None or isinstance(value, datetime):
            return value
        try:
            return datetime.fromisoformat(str(value))
        except ValueError:
            raise InvalidBundleError(f"Date illisible: {value!r}")
