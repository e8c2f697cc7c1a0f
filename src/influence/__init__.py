"""Influence video publishing backend."""
