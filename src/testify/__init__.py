# Testify
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Public package interface for the Testify template and result store."""

from testify.core.models import ReportResult, ScoreInfo, Template
from testify.services.client_facade import ClientFacade
from testify.services.sync_cache import SyncCache
from testify.storage.database import Database, get_database, reset_database
from testify.storage.errors import (
    ConstraintViolation,
    DecodeFailure,
    ForeignKeyViolation,
    InitializationFailure,
    IOFailure,
    StorageError,
)
from testify.storage.stores import ResultStore, TemplateStore
from testify.utils.config import APP_VERSION as __version__

__all__ = [
    "ClientFacade",
    "SyncCache",
    "Template",
    "ReportResult",
    "ScoreInfo",
    "Database",
    "get_database",
    "reset_database",
    "TemplateStore",
    "ResultStore",
    "StorageError",
    "InitializationFailure",
    "ConstraintViolation",
    "ForeignKeyViolation",
    "DecodeFailure",
    "IOFailure",
    "__version__",
]
