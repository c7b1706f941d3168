"""
Acces aux packs stockes en base.
Fournit au solveur des observations deja filtrees (statut, fenetre de dates).
"""

from datetime import datetime, timedelta
from typing import Mapping, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from ..models import Bundle, BundleItem, BundleStatus
from ..pricing.observations import BundleObservation, BundleLine, validate_lines, validate_price


class BundleStore:
    """Lecture/ecriture des packs."""

    def __init__(self, session: Session):
        """
        Args:
            session: Session SQLAlchemy
        """
        self.session = session

    def _filtered(
        self,
        status: Optional[BundleStatus],
        since: Optional[datetime],
        until: Optional[datetime],
    ):
        query = self.session.query(Bundle)
        if status is not None:
            query = query.filter(Bundle.status == status)
        if since is not None:
            query = query.filter(Bundle.submitted_at >= since)
        if until is not None:
            query = query.filter(Bundle.submitted_at <= until)
        return query

    def load_observations(
        self,
        status: Optional[BundleStatus] = BundleStatus.APPROVED,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> list[BundleObservation]:
        """
        Charge les packs sous forme d'observations pour le solveur.

        Args:
            status: Statut a retenir (None = tous)
            since: Date de soumission minimum
            until: Date de soumission maximum

        Returns:
            Liste d'observations (packs sans items ignores)
        """
        bundles = (
            self._filtered(status, since, until)
            .options(selectinload(Bundle.items))
            .order_by(Bundle.id)
            .all()
        )

        observations = []
        for bundle in bundles:
            if not bundle.items:
                continue
            lines = tuple(BundleLine(item.item_type_id, item.quantity) for item in bundle.items)
            observations.append(
                BundleObservation(total_price=bundle.price, lines=lines, bundle_id=str(bundle.id))
            )
        return observations

    def add_bundle(
        self,
        price: float,
        items: Mapping[str, int],
        name: Optional[str] = None,
        status: BundleStatus = BundleStatus.APPROVED,
        source: Optional[str] = None,
        submitted_at: Optional[datetime] = None,
    ) -> Bundle:
        """
        Valide et enregistre un pack.

        Raises:
            InvalidBundleError: prix ou lignes invalides
        """
        price = validate_price(price)
        lines = validate_lines(items.items())

        bundle = Bundle(
            name=name,
            price=price,
            status=status,
            source=source,
            submitted_at=submitted_at or datetime.utcnow(),
        )
        bundle.items = [BundleItem(item_type_id=l.item_type_id, quantity=l.quantity) for l in lines]

        self.session.add(bundle)
        self.session.flush()
        return bundle

    def update_bundle(
        self,
        bundle_id: int,
        price: Optional[float] = None,
        items: Optional[Mapping[str, int]] = None,
        status: Optional[BundleStatus] = None,
    ) -> Optional[Bundle]:
        """
        Modifie un pack existant (prix, lignes ou statut).

        updated_at est toujours avance, y compris quand seules les lignes
        changent, pour que l'empreinte du jeu de packs change aussi.

        Returns:
            Le pack modifie, ou None s'il n'existe pas

        Raises:
            InvalidBundleError: prix ou lignes invalides
        """
        bundle = self.session.get(Bundle, bundle_id)
        if bundle is None:
            return None

        if price is not None:
            bundle.price = validate_price(price)

        if items is not None:
            lines = validate_lines(items.items())
            current = {item.item_type_id: item for item in bundle.items}
            wanted = {line.item_type_id: line.quantity for line in lines}

            for item_id, item in current.items():
                if item_id not in wanted:
                    bundle.items.remove(item)
            for item_id, quantity in wanted.items():
                if item_id in current:
                    current[item_id].quantity = quantity
                else:
                    bundle.items.append(BundleItem(item_type_id=item_id, quantity=quantity))

        if status is not None:
            bundle.status = status

        # Strictement croissant, meme pour deux modifications tres rapprochees
        now = datetime.utcnow()
        if bundle.updated_at is not None and now <= bundle.updated_at:
            now = bundle.updated_at + timedelta(microseconds=1)
        bundle.updated_at = now
        self.session.flush()
        return bundle

    def count(self, status: Optional[BundleStatus] = BundleStatus.APPROVED) -> int:
        """Nombre de packs pour un statut."""
        return self._filtered(status, None, None).count()

    def fingerprint(
        self,
        status: Optional[BundleStatus] = BundleStatus.APPROVED,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> tuple:
        """
        Empreinte du jeu de packs, utilisee comme cle de cache.

        Change des qu'un pack est ajoute, retire, modifie ou change de statut.
        Les modifications doivent passer par update_bundle (ou l'ORM) pour
        avancer updated_at.
        """
        count, id_sum, max_id, price_sum, last_updated = self._filtered(
            status, since, until
        ).with_entities(
            func.count(Bundle.id),
            func.sum(Bundle.id),
            func.max(Bundle.id),
            func.sum(Bundle.price),
            func.max(Bundle.updated_at),
        ).one()

        return (
            status.value if status else None,
            since.isoformat() if since else None,
            until.isoformat() if until else None,
            count,
            id_sum,
            max_id,
            price_sum,
            last_updated.isoformat() if last_updated else None,
        )
