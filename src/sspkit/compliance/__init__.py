"""Catalog, profile and extension-control access."""
