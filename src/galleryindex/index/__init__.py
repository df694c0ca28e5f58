"""Indexing engine components."""
