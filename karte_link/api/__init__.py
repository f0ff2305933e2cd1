"""HTTP API for the karte-link analytics service."""
