# Testify
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""Single entry point for consumers of the template/result store."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import Future
from datetime import datetime

from testify.core.models import ReportResult, ScoreInfo, Template
from testify.services.sync_cache import SyncCache
from testify.services.types import Snapshot, SnapshotListener
from testify.storage.database import Database
from testify.storage.errors import InitializationFailure, StorageError
from testify.storage.stores import ResultStore, TemplateStore, ensure_database_schema
from testify.utils.config import DEFAULT_DATE_FORMAT, Settings

log = logging.getLogger(__name__)

__all__ = ["ClientFacade"]


class ClientFacade:
    """
    Compose the stores and the cache behind one object.

    Construct it once at process start and hand it to consumers. Mutations
    write to the database first and only then touch the cache; when the write
    fails the error propagates and the cache is left as it was.

    Usage:
        facade = ClientFacade(Database(path))
        facade.initialize()
        template = facade.create_template("Prova 1", 3, ["A", "B", "C"])
        facade.add_result(template, ScoreInfo.from_counts(2, 3), "Ana")
        facade.close()
    """

    def __init__(
        self,
        db: Database,
        *,
        date_format: str = DEFAULT_DATE_FORMAT,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.db = db
        self.templates = TemplateStore(db)
        self.results = ResultStore(db)
        self.cache = SyncCache(self.templates, self.results)
        self._date_format = date_format
        self._clock = clock
        self._initializing = True
        # Held across each durable write and the cache update that follows it.
        self._mutation_lock = threading.RLock()

    @classmethod
    def from_settings(cls, settings: Settings) -> ClientFacade:
        return cls(Database(settings.db_path), date_format=settings.date_format)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def initialize(self) -> Snapshot:
        """Ensure the schema and perform the first full load.

        Raises:
            InitializationFailure: if the schema or the first load fails; the
                facade then keeps reporting ``is_initializing()``
        """

        ensure_database_schema(self.db)
        try:
            snapshot = self.cache.load()
        except StorageError as exc:
            log.error("Initial load failed: %s", exc)
            raise InitializationFailure(f"initial load failed: {exc}") from exc
        self._initializing = False
        log.info("Store ready: %d templates loaded from %s", len(snapshot), self.db.path)
        return snapshot

    def initialize_async(self) -> Future:
        """Queue :meth:`initialize` on the database writer thread and return its future.

        Store calls made by ``initialize`` from that thread run inline.
        """

        try:
            return self.db.submit(lambda _conn: self.initialize())
        except StorageError as exc:
            log.error("Could not open database for initialization: %s", exc)
            future: Future = Future()
            future.set_exception(InitializationFailure(f"could not open database: {exc}"))
            return future

    def is_initializing(self) -> bool:
        return self._initializing

    def close(self) -> None:
        self.db.close()

    def __enter__(self) -> ClientFacade:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def list_templates(self) -> Snapshot:
        return self.cache.snapshot()

    def get_template(self, template_id: str) -> Template | None:
        return self.cache.get(template_id)

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        return self.cache.subscribe(listener)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def create_template(
        self,
        title: str,
        question_count: int,
        answers: Sequence[str],
        image_path: str | None = None,
        map_path: str | None = "",
        *,
        template_id: str | None = None,
    ) -> Template:
        """Validate, persist and cache a new answer-key template.

        Raises:
            ValueError: if the title or answer key is invalid
            ConstraintViolation: if ``template_id`` is already taken
        """

        self._require_ready()
        template = Template.new(
            title,
            question_count,
            list(answers),
            image_path=image_path,
            map_path=map_path,
            template_id=template_id,
            date_format=self._date_format,
            now=self._clock(),
        )
        with self._mutation_lock:
            self.templates.insert(template)
            self.cache.apply_new_template(template)
        return template

    def add_result(
        self,
        template: Template | str,
        score_info: ScoreInfo,
        student_name: str | None = None,
        matricula: str | None = None,
        turma: str | None = None,
    ) -> ReportResult:
        """Persist one graded result and reload the cache.

        Raises:
            ForeignKeyViolation: if the template does not exist
        """

        self._require_ready()
        template_id = template.id if isinstance(template, Template) else str(template)
        with self._mutation_lock:
            result = self.results.insert(template_id, score_info, student_name, matricula, turma)
            self.cache.reconcile_after_result_insert()
        return result

    def delete_template(self, template_id: str) -> bool:
        """Delete a template and its results; unknown ids are a no-op."""

        self._require_ready()
        with self._mutation_lock:
            removed = self.templates.delete_by_id(template_id)
            self.cache.remove_template(template_id)
        return removed

    # ------------------------------------------------------------------
    def _require_ready(self) -> None:
        if self._initializing:
            raise InitializationFailure("store is not initialized; call initialize() first")
