"""Immutable state, action and effect types for the sync reducer."""
