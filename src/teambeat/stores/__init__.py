"""In-process stores for ephemeral state: presence, notes locks and login rate limits."""
