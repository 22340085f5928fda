"""Catalog access, persistence repositories and money helpers."""
