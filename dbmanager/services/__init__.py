"""Service Layer — the lifecycle manager and the metadata cache it consults."""
