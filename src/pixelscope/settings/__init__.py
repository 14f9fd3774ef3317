"""Persisted user settings and YAML-backed value sets."""
