"""Alias engine application layer: engine facade, CLI, startup and shutdown services."""
