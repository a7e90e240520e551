"""Packaged JSON Schemas for persisted artifacts."""
