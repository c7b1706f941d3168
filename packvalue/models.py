"""
Modeles SQLAlchemy pour la base de donnees.
Tables: item_types, bundles, bundle_items, price_snapshots, snapshot_item_prices
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Optional
import json

from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    Boolean,
    DateTime,
    Date,
    Text,
    ForeignKey,
    Index,
    Enum,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class BundleStatus(PyEnum):
    """Statut de moderation d'un pack."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class PriceTrend(PyEnum):
    """Tendance d'un prix vs snapshot precedent."""
    UP = "UP"
    DOWN = "DOWN"
    STABLE = "STABLE"


class ItemType(Base):
    """Catalogue des types d'items (affichage uniquement)."""

    __tablename__ = "item_types"

    id = Column(String(100), primary_key=True)  # ex: "sacred_shard"
    name = Column(String(200), nullable=False)
    category = Column(String(50), nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<ItemType {self.id}: {self.name}>"


class Bundle(Base):
    """Pack observe (prix paye pour un ensemble d'items)."""

    __tablename__ = "bundles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=True)
    price = Column(Float, nullable=False)
    status = Column(Enum(BundleStatus), default=BundleStatus.APPROVED, nullable=False)
    source = Column(String(100), nullable=True)  # ex: "community", "import"

    submitted_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relations
    items = relationship(
        "BundleItem",
        back_populates="bundle",
        cascade="all, delete-orphan",
        order_by="BundleItem.item_type_id",
    )

    # Index
    __table_args__ = (
        Index("ix_bundles_status_submitted", "status", "submitted_at"),
    )

    @property
    def item_map(self) -> dict[str, int]:
        """Retourne {item_type_id: quantite}."""
        return {item.item_type_id: item.quantity for item in self.items}

    def __repr__(self) -> str:
        return f"<Bundle {self.id}: {self.price} ({len(self.items)} items)>"


class BundleItem(Base):
    """Ligne d'un pack."""

    __tablename__ = "bundle_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    bundle_id = Column(Integer, ForeignKey("bundles.id", ondelete="CASCADE"), nullable=False)
    item_type_id = Column(String(100), nullable=False)
    quantity = Column(Integer, nullable=False)

    # Relations
    bundle = relationship("Bundle", back_populates="items")

    __table_args__ = (
        Index("ix_bundle_items_bundle_item", "bundle_id", "item_type_id", unique=True),
        Index("ix_bundle_items_item", "item_type_id"),
    )

    def __repr__(self) -> str:
        return f"<BundleItem {self.item_type_id} x{self.quantity}>"


class PriceSnapshot(Base):
    """Snapshot quotidien des prix estimes."""

    __tablename__ = "price_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    as_of_date = Column(Date, nullable=False, unique=True, index=True)

    # Donnees du calcul
    bundles_analyzed = Column(Integer, default=0, nullable=False)
    pure_bundles = Column(Integer, default=0, nullable=False)
    converged = Column(Boolean, default=True, nullable=False)
    iterations = Column(Integer, default=0, nullable=False)

    # Prix par unite des packs (prix / quantite totale)
    cheapest_unit_cost = Column(Float, nullable=True)
    median_unit_cost = Column(Float, nullable=True)
    highest_unit_cost = Column(Float, nullable=True)

    # Metadata debug (JSON): anomalies, warnings...
    raw_meta = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relations
    item_prices = relationship(
        "SnapshotItemPrice",
        back_populates="snapshot",
        cascade="all, delete-orphan",
    )

    def set_raw_meta(self, data: dict) -> None:
        """Stocke les metadata en JSON."""
        self.raw_meta = json.dumps(data, ensure_ascii=False, default=str)

    def get_raw_meta(self) -> dict:
        """Recupere les metadata depuis JSON."""
        if self.raw_meta:
            return json.loads(self.raw_meta)
        return {}

    def price_for(self, item_type_id: str) -> Optional["SnapshotItemPrice"]:
        for item_price in self.item_prices:
            if item_price.item_type_id == item_type_id:
                return item_price
        return None

    def __repr__(self) -> str:
        return f"<PriceSnapshot {self.as_of_date}: {len(self.item_prices)} items>"


class SnapshotItemPrice(Base):
    """Prix d'un item dans un snapshot."""

    __tablename__ = "snapshot_item_prices"

    id = Column(Integer, primary_key=True, autoincrement=True)
    snapshot_id = Column(Integer, ForeignKey("price_snapshots.id", ondelete="CASCADE"), nullable=False)
    item_type_id = Column(String(100), nullable=False)

    unit_price = Column(Float, nullable=False)
    confidence = Column(Float, nullable=False)  # 0-100
    bundle_count = Column(Integer, default=0, nullable=False)
    total_quantity = Column(Integer, default=0, nullable=False)

    # Variation vs snapshot precedent
    price_change_pct = Column(Float, nullable=True)
    trend = Column(Enum(PriceTrend), default=PriceTrend.STABLE, nullable=False)

    # Relations
    snapshot = relationship("PriceSnapshot", back_populates="item_prices")

    __table_args__ = (
        Index("ix_snapshot_items_snapshot_item", "snapshot_id", "item_type_id", unique=True),
        Index("ix_snapshot_items_item", "item_type_id"),
    )

    def __repr__(self) -> str:
        return f"<SnapshotItemPrice {self.item_type_id}: {self.unit_price}>"
