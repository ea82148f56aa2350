"""Bundled static definition artifacts (profiles, code systems, value sets)."""
