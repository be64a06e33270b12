"""Database access for TeamBeat."""
