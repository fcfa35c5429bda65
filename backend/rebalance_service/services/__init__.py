"""Refresh and recording services."""
