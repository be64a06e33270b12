"""Live updates: SSE connection registry, event envelope and broadcast composer."""
