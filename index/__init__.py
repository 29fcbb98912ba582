"""Alias index: data model, master document and seed builder."""
