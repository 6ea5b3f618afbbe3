from __future__ import annotations

"""
SQLite helpers: connection setup, schema, row codecs and the serialized writer.
"""

__all__: list[str] = []
