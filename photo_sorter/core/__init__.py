"""Shared models, configuration, errors and similarity primitives."""
