"""Bundled tool recipes (YAML package data)."""
