"""
Configuration centralisee pour l'estimation des prix d'items.
Tous les parametres du solveur et des couches autour sont definis ici.
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional
import yaml


@dataclass
class SolverConfig:
    """Parametres du solveur iteratif."""

    # Tolerance de convergence (unites monetaires)
    epsilon: float = 0.001

    # Nombre maximum d'iterations
    max_iterations: int = 10

    # Compter les items non prices d'un pack "promo" (bundle_count + quantite)
    count_unpriced_participation: bool = True


@dataclass
class ConfidenceConfig:
    """Poids du score de confiance."""

    bundle_weight: float = 10.0    # Points par pack distinct
    quantity_weight: float = 0.5   # Points par unite observee
    quantity_cap: float = 100.0    # Plafond de quantite prise en compte
    max_score: float = 100.0


@dataclass
class QualityConfig:
    """Seuils d'avertissement sur le volume de donnees."""

    min_bundles: int = 100
    min_pure_bundles: int = 20


@dataclass
class TrackingConfig:
    """Parametres des snapshots quotidiens."""

    # Variation (%) au-dela de laquelle on considere une tendance
    trend_threshold_pct: float = 2.0
    history_days: int = 30


@dataclass
class CacheConfig:
    """Parametres du cache de prix."""

    # Age maximum d'une entree (None = invalidation explicite uniquement)
    max_age_seconds: Optional[float] = None


@dataclass
class DatabaseConfig:
    """Parametres base de donnees."""

    db_path: Path = field(default_factory=lambda: Path("data/packvalue.db"))
    echo_sql: bool = False


DEFAULT_CONFIG_PATH = Path("config.yaml")

SECTIONS = ("solver", "confidence", "quality", "tracking", "cache", "database")


@dataclass
class AppConfig:
    """Configuration globale de l'application."""

    solver: SolverConfig = field(default_factory=SolverConfig)
    confidence: ConfidenceConfig = field(default_factory=ConfidenceConfig)
    quality: QualityConfig = field(default_factory=QualityConfig)
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "AppConfig":
        """
        Charge la config depuis un fichier YAML.

        Fichier absent = valeurs par defaut; cles inconnues ignorees.
        """
        config = cls()
        config_path = config_path or DEFAULT_CONFIG_PATH

        if not config_path.exists():
            return config

        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        for section in SECTIONS:
            target = getattr(config, section)
            for key, value in (data.get(section) or {}).items():
                if not hasattr(target, key):
                    continue
                if key == "db_path":
                    value = Path(value)
                setattr(target, key, value)

        return config

    def save(self, config_path: Optional[Path] = None) -> None:
        """Sauvegarde la config dans un fichier YAML."""
        config_path = config_path or DEFAULT_CONFIG_PATH

        data = {}
        for section in SECTIONS:
            target = getattr(self, section)
            data[section] = {}
            for f in fields(target):
                value = getattr(target, f.name)
                data[section][f.name] = str(value) if isinstance(value, Path) else value

        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(data, f, default_flow_style=False, allow_unicode=True)


# Singleton global
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Retourne la configuration globale (singleton)."""
    global _config
    if _config is None:
        _config = AppConfig.load()
    return _config


def reload_config(config_path: Optional[Path] = None) -> AppConfig:
    """Recharge la configuration."""
    global _config
    _config = AppConfig.load(config_path)
    return _config


def set_config(config: Optional[AppConfig]) -> None:
    """Remplace la configuration globale (None = rechargement au prochain acces)."""
    global _config
    _config = config
