"""Geographic intelligence directory: catalog, search, drill-down navigation and live stats."""

__version__ = "0.1.0"
