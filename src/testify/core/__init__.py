"""Core records and logging setup."""
