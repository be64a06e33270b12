"""Read-model builders shared by API routes and SSE broadcasts."""
