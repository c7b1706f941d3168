from .snapshots import SnapshotTracker

__all__ = ["SnapshotTracker"]
