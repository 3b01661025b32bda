"""Redis-backed snapshot cache."""
