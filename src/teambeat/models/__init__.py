"""Database models for TeamBeat."""
