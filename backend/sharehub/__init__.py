"""ShareHub: shared file hub with chat and administration."""
