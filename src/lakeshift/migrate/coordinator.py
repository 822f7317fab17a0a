"""
MigrationCoordinator: converts a source-catalog table into a target table in place.

State machine
    INIT → TARGET_RESOLVED → DISPATCHED → COMMITTED → SOURCE_DROPPED   (success)
                                  └──────────┴──→ FAILED → ROLLING_BACK → ROLLED_BACK

- INIT → TARGET_RESOLVED: source existence and compatibility are checked against the existing
  target, or against the schema the target would be created with; partitions are planned;
  only then is a missing target created (and remembered as created by this run).
- TARGET_RESOLVED → DISPATCHED: one FileRelocationTask per partition on a bounded executor.
- Any task failure, or a rejected commit: set the cancel event, cancel pending futures, block
  until every future is done, reverse the ledger, drop the target iff created by this run,
  raise one MigrationError.
- COMMITTED → SOURCE_DROPPED: the source table is dropped only after the commit; a failed drop
  is reported on the result and logged, the migration stays committed.

Notes
- Two migrations of the same (source, target) pair cannot run concurrently in one process.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from concurrent.futures import FIRST_EXCEPTION, Executor, Future, ThreadPoolExecutor, wait
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum

import structlog

from lakeshift.core.constants import MAX_WORKERS
from lakeshift.core.errors import (
    ConcurrentMigrationError,
    ConfigError,
    MigrationError,
    TableNotFoundError,
    ValidationError,
)
from lakeshift.core.identifiers import TableIdentifier
from lakeshift.core.messages import CommitMessage
from lakeshift.core.schema import SourceTable, schema_from_source
from lakeshift.io.fs import FileIO
from lakeshift.io.metastore import SourceCatalog
from lakeshift.io.warehouse import FileStoreTable, TargetCatalog

from .compat import CompatibilityChecker
from .ledger import RollbackLedger
from .partitions import PartitionEnumerator, PartitionPlan
from .task import FileRelocationTask, TaskCancelled

__all__ = ["MigrationState", "MigrationResult", "MigrationCoordinator"]

logger = structlog.get_logger(__name__)


class MigrationState(Enum):
    INIT = "init"
    TARGET_RESOLVED = "target_resolved"
    DISPATCHED = "dispatched"
    COMMITTED = "committed"
    SOURCE_DROPPED = "source_dropped"
    FAILED = "failed"
    ROLLING_BACK = "rolling_back"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True, slots=True)
class MigrationResult:
    """
    Outcome of a committed migration.

    Attributes:
        source (TableIdentifier): Migrated source table.
        target (TableIdentifier): Target table.
        snapshot_id (int): Snapshot published by the commit.
        partitions (int): Number of partition entries committed.
        files (int): Number of relocated files.
        rows (int): Rows added to the target.
        target_created (bool): The target table was created by this run.
        source_dropped (bool): The source table was dropped.
        source_drop_error (str | None): Why dropping the source failed, if it did.
        state (MigrationState): SOURCE_DROPPED, or COMMITTED when the drop failed.
    """

    source: TableIdentifier
    target: TableIdentifier
    snapshot_id: int
    partitions: int
    files: int
    rows: int
    target_created: bool
    source_dropped: bool
    source_drop_error: str | None
    state: MigrationState


_ACTIVE: set[tuple[TableIdentifier, TableIdentifier]] = set()
_ACTIVE_LOCK = threading.Lock()


@contextmanager
def _exclusive(source: TableIdentifier, target: TableIdentifier) -> Iterator[None]:
    key = (source, target)
    with _ACTIVE_LOCK:
        if key in _ACTIVE:
            raise ConcurrentMigrationError(f"a migration of {source} to {target} is already running")
        _ACTIVE.add(key)
    try:
        yield
    finally:
        with _ACTIVE_LOCK:
            _ACTIVE.discard(key)


class MigrationCoordinator:
    """
    Orchestrates one migration.

    Args:
        source_catalog (SourceCatalog): Metastore holding the source table.
        target_catalog (TargetCatalog): Warehouse receiving the target table.
        file_io (FileIO): Filesystem shared by source data and the warehouse.
        source (TableIdentifier): Source table.
        target (TableIdentifier): Target table (created when missing).
        options (dict[str, str] | None): Forwarded verbatim into a created target schema.
        executor (Executor | None): Task executor; when None a ThreadPoolExecutor of
            max_workers is created and shut down by the coordinator.
        max_workers (int): Pool size used when no executor is injected.
        drop_source_data (bool): Passed to the source drop after a successful commit.
        checker (CompatibilityChecker | None): Pre-flight checker.

    Raises:
        ConfigError: If max_workers is below 1.
    """

    def __init__(
        self,
        source_catalog: SourceCatalog,
        target_catalog: TargetCatalog,
        file_io: FileIO,
        source: TableIdentifier,
        target: TableIdentifier,
        options: dict[str, str] | None = None,
        *,
        executor: Executor | None = None,
        max_workers: int = MAX_WORKERS,
        drop_source_data: bool = True,
        checker: CompatibilityChecker | None = None,
    ) -> None:
        if max_workers < 1:
            raise ConfigError(f"max_workers must be >= 1, got {max_workers}")
        self.source_catalog = source_catalog
        self.target_catalog = target_catalog
        self.file_io = file_io
        self.source = source
        self.target = target
        self.options = dict(options or {})
        self.executor = executor
        self.max_workers = max_workers
        self.drop_source_data = drop_source_data
        self.checker = checker or CompatibilityChecker()
        self.ledger = RollbackLedger()
        self._state = MigrationState.INIT
        self._log = logger.bind(source=str(source), target=str(target))

    @property
    def state(self) -> MigrationState:
        return self._state

    def _transition(self, state: MigrationState) -> None:
        self._log.debug("migration_state", previous=self._state.value, state=state.value)
        self._state = state

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------
    def _planned_target(self, source_table: SourceTable) -> tuple[FileStoreTable, bool]:
        if self.target_catalog.table_exists(self.target):
            return self.target_catalog.get_table(self.target), True
        schema = schema_from_source(source_table, self.options)
        location = self.target_catalog.table_location(self.target)
        return FileStoreTable(identifier=self.target, location=location, schema=schema), False

    def _resolve(self) -> tuple[FileStoreTable, list[PartitionPlan], bool]:
        if not self.source_catalog.table_exists(self.source):
            raise TableNotFoundError(f"source table {self.source} does not exist")
        source_table = self.source_catalog.get_table(self.source)
        target_table, existed = self._planned_target(source_table)
        self.checker.check(source_table, target_table)
        plans = PartitionEnumerator(self.source_catalog, target_table).plans(self.source)
        if not plans:
            raise ValidationError(f"source table {self.source} has no partitions to migrate")

        created = False
        if not existed:
            target_table = self.target_catalog.create_table(self.target, target_table.schema)
            created = True
        self._transition(MigrationState.TARGET_RESOLVED)
        return target_table, plans, created

    # ------------------------------------------------------------------
    # Dispatch / recovery
    # ------------------------------------------------------------------
    def _dispatch(
        self, executor: Executor, target_table: FileStoreTable, plans: list[PartitionPlan]
    ) -> tuple[list[CommitMessage] | None, list[BaseException]]:
        cancel = threading.Event()
        futures: list[Future[CommitMessage]] = []
        try:
            for plan in plans:
                task = FileRelocationTask(
                    self.file_io,
                    plan,
                    self.ledger,
                    schema_id=target_table.schema.schema_id,
                    cancel_event=cancel,
                )
                futures.append(executor.submit(task))
            self._transition(MigrationState.DISPATCHED)
            wait(futures, return_when=FIRST_EXCEPTION)
            if all(f.done() and f.exception() is None for f in futures):
                return [f.result() for f in futures], []
        except Exception as exc:
            cancel.set()
            for f in futures:
                f.cancel()
            wait(futures)
            return None, [exc, *self._task_errors(futures)]

        cancel.set()
        for f in futures:
            f.cancel()
        # Cancellation is advisory: block until every task has really stopped.
        wait(futures)
        return None, self._task_errors(futures)

    @staticmethod
    def _task_errors(futures: list[Future[CommitMessage]]) -> list[BaseException]:
        errors: list[BaseException] = []
        for f in futures:
            if f.cancelled():
                continue
            exc = f.exception()
            if exc is not None and not isinstance(exc, TaskCancelled):
                errors.append(exc)
        return errors

    def _recover(self, errors: list[BaseException], created: bool) -> MigrationError:
        self._transition(MigrationState.FAILED)
        self._log.error("migration_failed", errors=[f"{type(e).__name__}: {e}" for e in errors])
        self._transition(MigrationState.ROLLING_BACK)

        report = self.ledger.reverse(self.file_io)
        dropped = False
        if created:
            try:
                self.target_catalog.drop_table(self.target)
                dropped = True
            except Exception as exc:
                self._log.error("target_drop_failed", error=str(exc))
                report.errors.append(exc)

        self._transition(MigrationState.ROLLED_BACK)
        self._log.info(
            "migration_rolled_back",
            restored=len(report.restored),
            skipped=len(report.skipped),
            rollback_errors=len(report.errors),
            target_dropped=dropped,
        )
        err = MigrationError(
            f"migrating {self.source} to {self.target} failed",
            errors,
            rolled_back=report.restored,
            rollback_errors=report.errors,
            target_dropped=dropped,
        )
        if errors:
            err.__cause__ = errors[0]
        return err

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    def migrate(self) -> MigrationResult:
        """
        Run the migration.

        Returns:
            MigrationResult: Committed snapshot and source-drop outcome.

        Raises:
            ValidationError: Pre-flight incompatibility, or a partitioned source without
                partitions; nothing was touched.
            TableNotFoundError: The source table does not exist; nothing was touched.
            ConcurrentMigrationError: The same pair is already being migrated.
            MigrationError: A task or the commit failed; every relocated file is back at its
                original path and a target created by this run has been dropped.
        """
        if self._state is not MigrationState.INIT:
            raise RuntimeError("a MigrationCoordinator runs exactly once")
        with _exclusive(self.source, self.target):
            target_table, plans, created = self._resolve()
            self._log.info("migration_started", partitions=len(plans), target_created=created)

            owned = self.executor is None
            executor = self.executor or ThreadPoolExecutor(
                max_workers=self.max_workers, thread_name_prefix="lakeshift-relocate"
            )
            try:
                messages, errors = self._dispatch(executor, target_table, plans)
                if messages is None:
                    raise self._recover(errors, created)
                try:
                    snapshot = target_table.commit(messages)
                except Exception as exc:
                    raise self._recover([exc], created) from exc
            finally:
                if owned:
                    executor.shutdown(wait=True)
            self._transition(MigrationState.COMMITTED)

            drop_error: str | None = None
            try:
                self.source_catalog.drop_table(self.source, delete_data=self.drop_source_data)
                self._transition(MigrationState.SOURCE_DROPPED)
            except Exception as exc:
                drop_error = f"{type(exc).__name__}: {exc}"
                self._log.warning("source_drop_failed", error=drop_error)

        result = MigrationResult(
            source=self.source,
            target=self.target,
            snapshot_id=snapshot.id,
            partitions=len(messages),
            files=sum(len(m.files) for m in messages),
            rows=sum(m.row_count for m in messages),
            target_created=created,
            source_dropped=drop_error is None,
            source_drop_error=drop_error,
            state=self._state,
        )
        self._log.info(
            "migration_finished",
            snapshot_id=result.snapshot_id,
            partitions=result.partitions,
            files=result.files,
            source_dropped=result.source_dropped,
        )
        return result
