"""Staged safety pipeline: checks, reports, bypasses and the gate."""
