"""Durable storage: database handle, stores and error taxonomy."""
