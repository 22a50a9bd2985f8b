"""Embedding similarity and reconciliation engine for a PhotoPrism library."""
