"""Group-benefits quote extraction and comparison service."""

__version__ = "0.1.0"
