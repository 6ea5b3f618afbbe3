# Testify
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

"""In-memory mirror of every template and its results.

The snapshot is an immutable tuple that is replaced wholesale, so readers
never need a lock. Each mutator is called only after the matching durable
write has succeeded.

After a result insert the cache reloads everything from the store instead of
patching the affected template. Template inserts and deletes are patched
locally; a prepended template matches what ``load()`` returns because the
store orders templates by ``date DESC, rowid DESC``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from testify.core.models import Template
from testify.services.types import ResultRepository, Snapshot, SnapshotListener, TemplateRepository

log = logging.getLogger(__name__)

__all__ = ["SyncCache"]


class SyncCache:
    def __init__(self, templates: TemplateRepository, results: ResultRepository) -> None:
        self._templates = templates
        self._results = results
        self._snapshot: Snapshot = ()
        self._loaded = False
        self._write_lock = threading.Lock()
        self._listeners: list[SnapshotListener] = []

    # ------------------------------------------------------------------
    @property
    def loaded(self) -> bool:
        return self._loaded

    def snapshot(self) -> Snapshot:
        return self._snapshot

    def get(self, template_id: str) -> Template | None:
        for template in self._snapshot:
            if template.id == template_id:
                return template
        return None

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call ``listener(snapshot)`` after every change; returns an unsubscribe callable."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _unsubscribe

    # ------------------------------------------------------------------
    def load(self) -> Snapshot:
        """Replace the snapshot with a full read of the store."""

        with self._write_lock:
            templates = [
                template.with_results(self._results.list_by_template(template.id))
                for template in self._templates.list_all()
            ]
            self._snapshot = tuple(templates)
            self._loaded = True
            snapshot = self._snapshot
        log.debug("Cache loaded: %d templates", len(snapshot))
        self._notify(snapshot)
        return snapshot

    def reconcile_after_result_insert(self) -> Snapshot:
        return self.load()

    def apply_new_template(self, template: Template) -> Snapshot:
        with self._write_lock:
            rest = tuple(t for t in self._snapshot if t.id != template.id)
            self._snapshot = (template, *rest)
            snapshot = self._snapshot
        self._notify(snapshot)
        return snapshot

    def remove_template(self, template_id: str) -> Snapshot:
        with self._write_lock:
            self._snapshot = tuple(t for t in self._snapshot if t.id != template_id)
            snapshot = self._snapshot
        self._notify(snapshot)
        return snapshot

    # ------------------------------------------------------------------
    def _notify(self, snapshot: Snapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                log.exception("Cache listener %r failed", listener)
