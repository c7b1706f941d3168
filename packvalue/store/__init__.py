from .bundle_store import BundleStore
from .importer import BundleImporter

__all__ = ["BundleStore", "BundleImporter"]
