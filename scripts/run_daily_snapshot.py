#!/usr/bin/env python3
"""
Script execute par cron une fois par jour.
Recalcule les prix a partir des packs approuves et enregistre le snapshot
du jour (sans effet si le snapshot existe deja).
"""
from datetime import datetime

from packvalue.database import init_db, get_session
from packvalue.service import PricingService
from packvalue.store import BundleStore
from packvalue.tracking import SnapshotTracker


def log(message: str):
    """Log avec timestamp."""
    print(f"[{datetime.now().strftime('%Y-%m-%d %H:%M:%S')}] {message}")


def main():
    """Point d'entree principal."""
    init_db()

    with get_session() as session:
        store = BundleStore(session)
        tracker = SnapshotTracker(session)

        result = PricingService(store).get_prices(force_refresh=True)
        if result.no_data:
            log("Aucun pack approuve, skip")
            return

        log(f"{len(result.prices)} prix calcules ({result.bundle_count} packs, converge={result.converged})")
        for warning in result.warnings:
            log(f"Attention: {warning}")

        snapshot = tracker.create_daily_snapshot(result, store.load_observations())
        log(f"Snapshot du {snapshot.as_of_date}: {len(snapshot.item_prices)} items")


if __name__ == '__main__':
    main()
