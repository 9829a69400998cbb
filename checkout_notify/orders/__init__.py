"""Canonical order model and its reconstruction from checkout payloads."""
