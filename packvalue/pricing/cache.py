"""
Cache des resultats de calcul de prix.
Possede par l'appelant; le solveur reste sans etat.
"""

import threading
import time
from typing import Callable, Generic, Hashable, Optional, TypeVar

T = TypeVar("T")


class PricingCache(Generic[T]):
    """
    Cache cle -> resultat avec invalidation explicite.

    La cle doit changer des que le jeu de packs change (ex: empreinte du
    store); max_age_seconds n'est qu'un garde-fou supplementaire.
    """

    def __init__(
        self,
        max_age_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._key: Optional[Hashable] = None
        self._value: Optional[T] = None
        self._stored_at: float = 0.0

    def get(self, key: Hashable) -> Optional[T]:
        """Retourne le resultat en cache pour cette cle, sinon None."""
        with self._lock:
            if self._value is None or self._key != key:
                return None
            if self.max_age_seconds is not None:
                if self._clock() - self._stored_at > self.max_age_seconds:
                    return None
            return self._value

    def put(self, key: Hashable, value: T) -> None:
        """Remplace l'entree en cache."""
        with self._lock:
            self._key = key
            self._value = value
            self._stored_at = self._clock()

    def invalidate(self) -> None:
        """Vide le cache (ex: apres acceptation de nouveaux packs)."""
        with self._lock:
            self._key = None
            self._value = None
            self._stored_at = 0.0

    def get_or_compute(self, key: Hashable, compute: Callable[[], T]) -> T:
        """Retourne l'entree en cache ou la calcule et la stocke."""
        cached = self.get(key)
        if cached is not None:
            return cached

        value = compute()
        self.put(key, value)
        return value

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return self._value is None
