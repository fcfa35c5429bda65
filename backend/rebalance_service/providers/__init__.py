"""Clients for the document store and market-data endpoints."""
