"""Logging and telemetry setup."""
