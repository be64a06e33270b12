"""FastAPI application for TeamBeat."""
