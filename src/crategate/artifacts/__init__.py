"""Persisted JSON artifacts."""
