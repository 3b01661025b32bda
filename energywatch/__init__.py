"""energywatch: telemetry ingestion and query service for simulated energy devices."""

__version__ = "0.1.0"
