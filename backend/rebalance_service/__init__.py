"""Rebalance advisor HTTP service."""
