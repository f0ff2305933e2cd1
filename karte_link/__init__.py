"""karte-link: cross-source patient record linkage for clinic analytics."""

__version__ = "1.0.0"
