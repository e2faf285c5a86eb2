"""Shared helpers: HTML filter, content validation, logging and telemetry."""
