#!/usr/bin/env python3
"""
CLI pour l'estimation des prix d'items.

Commandes:
    init            Initialise la base de donnees
    import          Importe des packs (JSON/YAML)
    prices          Calcule et affiche les prix unitaires
    analyze         Note un pack par rapport aux prix estimes
    snapshot        Cree le snapshot de prix du jour
    history         Historique du prix d'un item
    export-csv      Exporte les prix en CSV
    stats           Statistiques de la base
"""

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from packvalue.config import get_config, reload_config
from packvalue.database import init_db, reset_db, reset_engine, get_session
from packvalue.models import Bundle, BundleStatus, ItemType, PriceSnapshot

console = Console()


def _setup_logging(verbose: bool) -> None:
    root = logging.getLogger()
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(RichHandler(console=console, show_path=False))
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)


def _load_names(session) -> dict[str, str]:
    """Noms d'affichage {item_type_id: name} (lus avant fermeture de la session)."""
    return {item.id: item.name for item in session.query(ItemType).all()}


def _status_option(value: str):
    return None if value == "all" else BundleStatus(value.upper())


@click.group()
@click.option("--config", "-c", type=click.Path(exists=True), help="Chemin vers config.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Logs detailles")
@click.pass_context
def cli(ctx, config, verbose):
    """Estimation du prix unitaire des items a partir des packs vendus."""
    ctx.ensure_object(dict)
    _setup_logging(verbose)
    if config:
        # Le moteur suit le db_path du fichier charge
        reset_engine()
        ctx.obj["config"] = reload_config(Path(config))
    else:
        ctx.obj["config"] = get_config()


@cli.command()
@click.option("--force", is_flag=True, help="Force la reinitialisation (supprime les donnees)")
def init(force):
    """Initialise la base de donnees."""
    if force:
        if click.confirm("Cela va supprimer toutes les donnees. Continuer?"):
            console.print("[yellow]Reinitialisation de la base...[/yellow]")
            reset_db()
            console.print("[green]Base reinitialisee.[/green]")
    else:
        console.print("[cyan]Initialisation de la base...[/cyan]")
        init_db()
        console.print("[green]Base initialisee.[/green]")


@cli.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--source", default="import", help="Origine des packs")
def import_bundles(path, source):
    """Importe des packs et types d'items depuis un fichier JSON/YAML."""
    from packvalue.pricing import InvalidBundleError
    from packvalue.store import BundleImporter

    init_db()

    try:
        with get_session() as session:
            stats = BundleImporter(session, source=source).import_file(Path(path))
    except InvalidBundleError as e:
        raise click.ClickException(str(e))

    console.print(f"[green]Termine: {stats['created']} packs crees, {stats['item_types']} types d'items[/green]")
    if stats["errors"]:
        console.print(f"[yellow]{stats['rejected']} packs rejetes:[/yellow]")
        for index, error in stats["errors"][:10]:
            console.print(f"  - #{escape(str(index))}: {escape(error)}")


@cli.command()
@click.option("--status", type=click.Choice(["approved", "pending", "all"]), default="approved")
@click.option("--since", type=click.DateTime(), help="Packs soumis depuis cette date")
@click.option("--min-confidence", type=float, help="Score minimum de confiance")
def prices(status, since, min_confidence):
    """Calcule et affiche les prix unitaires."""
    from packvalue.pricing import ConfidenceScorer
    from packvalue.service import PricingService
    from packvalue.store import BundleStore

    init_db()

    with get_session() as session:
        service = PricingService(BundleStore(session))
        result = service.get_prices(status=_status_option(status), since=since)
        names = _load_names(session)

    if result.no_data:
        console.print("[yellow]Aucun pack disponible, pas de prix a calculer.[/yellow]")
        raise SystemExit(1)

    table = Table(title=f"Prix estimes ({result.bundle_count} packs)")
    table.add_column("Item")
    table.add_column("Prix unitaire", justify="right")
    table.add_column("Confiance", justify="right")
    table.add_column("Packs", justify="right")
    table.add_column("Quantite", justify="right")

    estimates = sorted(result.prices.values(), key=lambda e: (-e.unit_price, e.item_type_id))
    for estimate in estimates:
        if min_confidence is not None and estimate.confidence_score < min_confidence:
            continue
        level = ConfidenceScorer.level(estimate.confidence_score).value
        table.add_row(
            names.get(estimate.item_type_id, estimate.item_type_id),
            f"{estimate.unit_price:.6f}",
            f"{estimate.confidence_score:.0f} ({level})",
            str(estimate.bundle_count),
            str(estimate.total_quantity_observed),
        )

    console.print(table)

    if not result.converged:
        console.print(f"[yellow]Attention: pas de convergence apres {result.iterations} iterations[/yellow]")
    for warning in result.warnings:
        console.print(f"[yellow]{warning}[/yellow]")
    if result.anomalies:
        console.print(f"[yellow]{len(result.anomalies)} anomalies ignorees[/yellow]")


@cli.command()
@click.option("--price", "pack_price", type=float, required=True, help="Prix du pack")
@click.argument("items", nargs=-1, required=True)
def analyze(pack_price, items):
    """Note un pack. ITEMS au format item_type_id=quantite."""
    from packvalue.pricing import analyze_pack_value
    from packvalue.service import PricingService
    from packvalue.store import BundleStore

    pack_items = {}
    for token in items:
        item_id, sep, qty = token.partition("=")
        if not sep or not qty.isdigit() or int(qty) <= 0:
            raise click.BadParameter(f"Format attendu item=quantite: {token}")
        pack_items[item_id] = int(qty)

    if pack_price <= 0:
        raise click.BadParameter("Le prix doit etre positif", param_hint="--price")

    init_db()

    with get_session() as session:
        store = BundleStore(session)
        result = PricingService(store).get_prices()
        history = store.load_observations()

    if result.no_data:
        console.print("[yellow]Aucun pack disponible, pas de prix pour evaluer le pack.[/yellow]")
        raise SystemExit(1)

    analysis = analyze_pack_value(pack_items, pack_price, result.price_map, history)

    console.print(f"\n[cyan]Note: {analysis.grade.value}[/cyan]")
    console.print(f"  Valeur totale: {analysis.total_value:.2f}")
    console.print(f"  Valeur par unite monetaire: {analysis.value_ratio:.2f}")
    if analysis.packs_compared:
        console.print(f"  Meilleur que {analysis.better_than_pct}% de {analysis.packs_compared} packs")
    if analysis.unpriced_items:
        console.print(f"[yellow]  Items sans prix: {', '.join(analysis.unpriced_items)}[/yellow]")

    for similar in analysis.similar_packs:
        content = ", ".join(f"{qty}x {item_id}" for item_id, qty in similar.items.items())
        console.print(f"  ~ {content} @ {similar.price:.2f} (ratio {similar.value_ratio:.2f})")


@cli.command()
@click.option("--force", is_flag=True, help="Remplacer le snapshot du jour")
def snapshot(force):
    """Cree le snapshot de prix du jour."""
    from packvalue.service import PricingService
    from packvalue.store import BundleStore
    from packvalue.tracking import SnapshotTracker

    init_db()

    with get_session() as session:
        store = BundleStore(session)
        result = PricingService(store).get_prices(force_refresh=True)
        snap = SnapshotTracker(session).create_daily_snapshot(
            result, store.load_observations(), force=force
        )

        if snap is None:
            console.print("[yellow]Aucune donnee, snapshot non cree.[/yellow]")
            raise SystemExit(1)

        console.print(f"[green]Snapshot du {snap.as_of_date}: {len(snap.item_prices)} items[/green]")


@cli.command()
@click.argument("item_type_id")
@click.option("--days", type=int, help="Nombre de jours d'historique")
def history(item_type_id, days):
    """Historique du prix d'un item."""
    from packvalue.tracking import SnapshotTracker

    init_db()

    with get_session() as session:
        rows = SnapshotTracker(session).get_item_history(item_type_id, days=days)

    if not rows:
        console.print(f"[yellow]Aucun historique pour {item_type_id}[/yellow]")
        return

    for row in rows:
        change = f"{row['change_pct']:+.1f}%" if row["change_pct"] is not None else "-"
        console.print(
            f"  {row['date']}  {row['price']:.6f}  conf={row['confidence']:.0f}  "
            f"{row['trend']:<6} {change:>7}  rang #{row['market_rank']}"
        )


@cli.command("export-csv")
@click.argument("output", type=click.Path())
@click.option("--min-confidence", type=float, help="Score minimum de confiance")
def export_csv(output, min_confidence):
    """Exporte les prix en CSV."""
    from packvalue.export import PriceExporter
    from packvalue.service import PricingService
    from packvalue.store import BundleStore

    init_db()

    with get_session() as session:
        result = PricingService(BundleStore(session)).get_prices()
        catalog = {item.id: item for item in session.query(ItemType).all()}

        if result.no_data:
            console.print("[yellow]Aucun pack disponible, rien a exporter.[/yellow]")
            raise SystemExit(1)

        stats = PriceExporter().export(result, Path(output), catalog=catalog, min_confidence=min_confidence)

    console.print(f"[green]Termine: {stats['exported']} lignes exportees vers {output}[/green]")


@cli.command()
def stats():
    """Affiche les statistiques de la base."""
    from packvalue.tracking import SnapshotTracker

    init_db()

    with get_session() as session:
        total = session.query(Bundle).count()
        approved = session.query(Bundle).filter(Bundle.status == BundleStatus.APPROVED).count()
        pending = session.query(Bundle).filter(Bundle.status == BundleStatus.PENDING).count()
        item_types = session.query(ItemType).count()
        snapshots = session.query(PriceSnapshot).count()
        tracking = SnapshotTracker(session).get_tracking_stats()

    console.print("\n[cyan]Statistiques:[/cyan]")
    console.print(f"  Packs totaux: {total}")
    console.print(f"  Packs approuves: {approved}")
    console.print(f"  Packs en attente: {pending}")
    console.print(f"  Types d'items: {item_types}")
    console.print(f"  Snapshots: {snapshots}")
    if tracking:
        console.print(f"  Suivi: {tracking['start']} -> {tracking['end']} ({tracking['tracking_days']} jours)")
        console.print(f"  Packs moyens par snapshot: {tracking['average_bundles']:.1f}")


if __name__ == "__main__":
    cli()
