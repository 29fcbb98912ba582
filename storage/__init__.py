"""Durable storage: backend, binary cache codec, catalog, persistent store and exports."""
