"""archnav: graph analytics core for architecture inventories."""

__version__ = "0.4.0"
