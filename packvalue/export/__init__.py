from .csv_export import PriceExporter

__all__ = ["PriceExporter"]
