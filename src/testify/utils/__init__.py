"""Utility modules for Testify."""
