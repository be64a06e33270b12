"""Authentication primitives: password hashing, sessions and signed tokens."""
