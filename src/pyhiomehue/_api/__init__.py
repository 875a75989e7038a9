"""Hue bridge REST endpoint modules (internal)."""
