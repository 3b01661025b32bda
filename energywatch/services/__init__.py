"""Telemetry generation, ingestion, retention, queries and scheduling."""
