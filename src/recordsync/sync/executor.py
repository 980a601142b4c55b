"""Sync executor.

Runs one job once: read the source, then validate, transform, check for
conflicts and write every record, and persist the outcome as a SyncResult.

Record-level failures are counted and the batch continues (unless the job's
policy is "fail"). Any other exception once the run has started, such as
an unreadable source, is a system-level failure: the run is stored with
status "error" and a single critical error, then SyncRunError is raised to
the caller.

Runs of the same job id never overlap: execute() holds a per-job lock for
the whole run.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from recordsync.core.errors import (
    JobBusyError,
    JobNotFoundError,
    SyncRunError,
)
from recordsync.core.types import (
    ALL_RECORDS,
    ErrorCode,
    OnError,
    Record,
    Severity,
    SyncStatus,
)
from recordsync.sync.conflicts import ConflictDetector
from recordsync.sync.results import SyncConflict, SyncError, SyncResult, compute_status
from recordsync.sync.retry import retry_call
from recordsync.sync.transform import (
    DEFAULT_REGISTRY,
    TransformRegistry,
    transform_record,
    unknown_rules,
)
from recordsync.sync.validation import CustomValidator, RecordValidator

if TYPE_CHECKING:
    from recordsync.core.config import SyncConfig
    from recordsync.server.database import Database
    from recordsync.server.models import SyncJob
    from recordsync.sources.registry import DataSourceRegistry

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class _RunState:
    """Counters of a run in progress."""

    processed: int = 0
    success: int = 0
    error: int = 0
    errors: list[SyncError] = field(default_factory=list)

    def record_failure(
        self,
        record_id: str,
        message: str,
        code: ErrorCode,
        field_name: str | None = None,
    ) -> None:
        self.errors.append(
            SyncError(
                record_id=record_id,
                error=message,
                error_code=code,
                severity=Severity.ERROR,
                field=field_name,
            )
        )


class SyncExecutor:
    """Execute sync jobs.

    Example:
        executor = SyncExecutor(database, registry)
        result = executor.execute(job_id)
    """

    def __init__(
        self,
        database: Database,
        registry: DataSourceRegistry,
        transforms: TransformRegistry = DEFAULT_REGISTRY,
        custom_validators: dict[str, CustomValidator] | None = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the executor.

        Args:
            database: Store holding jobs, logs and conflicts.
            registry: Data source registry used to read and write records.
            transforms: Transformation rule registry.
            custom_validators: Predicates for "custom" validation rules.
            clock: Returns the current UTC time (replaced in tests).
            sleep: Sleep function used between retries (replaced in tests).
        """
        self._db = database
        self._registry = registry
        self._transforms = transforms
        self._custom_validators = dict(custom_validators or {})
        self._clock = clock
        self._sleep = sleep
        self._detector = ConflictDetector(registry)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, job_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(job_id)
            if lock is None:
                lock = self._locks[job_id] = threading.Lock()
            return lock

    def is_running(self, job_id: str) -> bool:
        """Check if a run of the job is in flight."""
        return self._lock_for(job_id).locked()

    def execute(self, job_id: str, wait: bool = True) -> SyncResult:
        """Run a job once.

        Args:
            job_id: Job to run.
            wait: If a run of the same job is in flight, wait for it to end
                (True) or raise JobBusyError (False).

        Returns:
            The persisted SyncResult.

        Raises:
            JobNotFoundError: If the job is missing or inactive.
            ConfigurationError: If the job references an unknown data source.
            JobBusyError: If wait is False and the job is already running.
            SyncRunError: If the run failed at the system level.
        """
        lock = self._lock_for(job_id)
        if not lock.acquire(blocking=wait):
            raise JobBusyError(job_id)
        try:
            return self._run(job_id)
        finally:
            lock.release()

    def _run(self, job_id: str) -> SyncResult:
        job = self._db.get_active_job(job_id)
        if job is None:
            logger.error("Sync job not found or inactive: %s", job_id)
            raise JobNotFoundError(job_id)

        # Configuration problems surface before any I/O
        config = job.sync_config
        self._registry.get(job.source_system)
        self._registry.get(job.target_system)

        start = self._clock()
        log_id = self._db.start_log(job_id, start)
        logger.info(
            "Sync started: %s (%s -> %s, %s)",
            job_id,
            job.source_system,
            job.target_system,
            job.data_type,
        )

        state = _RunState()
        validator = RecordValidator(config.validation, self._custom_validators)
        warnings = self._rule_warnings(config, validator)

        try:
            self._process(job, config, validator, state)
        except Exception as e:
            logger.exception("Sync failed: %s", job_id)
            result = self._finish(
                job,
                config,
                log_id,
                start,
                state,
                warnings,
                system_error=SyncError.critical(str(e)),
            )
            raise SyncRunError(f"Sync job {job_id} failed: {e}", result) from e

        return self._finish(job, config, log_id, start, state, warnings)

    def _rule_warnings(self, config: SyncConfig, validator: RecordValidator) -> list[SyncError]:
        """Build one warning per unknown rule name referenced by the config."""
        names = unknown_rules(config, self._transforms)
        custom = validator.unknown_custom_rules()
        warnings = [
            SyncError(
                record_id=ALL_RECORDS,
                error=f"Unknown transformation rule {name!r} left values unchanged",
                error_code=ErrorCode.UNKNOWN_RULE,
                severity=Severity.WARNING,
            )
            for name in names
        ]
        warnings.extend(
            SyncError(
                record_id=ALL_RECORDS,
                error=f"Unknown custom validator {name!r} always passes",
                error_code=ErrorCode.UNKNOWN_RULE,
                severity=Severity.WARNING,
            )
            for name in dict.fromkeys(custom)
        )
        for warning in warnings:
            logger.warning("Job config warning: %s", warning.error)
        return warnings

    def _process(
        self,
        job: SyncJob,
        config: SyncConfig,
        validator: RecordValidator,
        state: _RunState,
    ) -> None:
        """Run the record loop, updating state as records go."""
        policy = config.error_handling
        data_type = job.data_type_enum
        attempts = policy.max_retries if policy.on_error is OnError.RETRY else 1

        for record in self._registry.read(job.source_system, data_type, config.filters):
            state.processed += 1
            record_id = _record_id(record, config.key_field, state.processed)

            failures = validator.validate(record)
            if failures:
                for failure in failures:
                    state.record_failure(
                        record_id, failure.message, ErrorCode.VALIDATION_FAILED, failure.field
                    )
                state.error += 1
                logger.warning(
                    "Record %s of %s failed validation: %s",
                    record_id,
                    job.id,
                    "; ".join(f.message for f in failures),
                )
                if policy.on_error is OnError.FAIL:
                    break
                continue

            conflicts: list[SyncConflict] = []

            def attempt(record: Record = record, conflicts: list[SyncConflict] = conflicts) -> None:
                transformed = transform_record(record, config, self._transforms)
                conflicts[:] = self._detector.detect(
                    job.id, transformed, job.target_system, data_type, config.key_field
                )
                self._registry.write(job.target_system, data_type, transformed, config.key_field)

            failed: Exception | None = None
            try:
                retry_call(
                    attempt,
                    max_attempts=attempts,
                    delay=policy.retry_delay_seconds,
                    sleep=self._sleep,
                    description=f"record {record_id} of {job.id}",
                )
            except Exception as e:
                failed = e

            self._store_conflicts(conflicts)

            if failed is None:
                state.success += 1
                continue

            state.error += 1
            state.record_failure(record_id, str(failed), ErrorCode.PROCESSING_FAILED)
            logger.warning("Record %s of %s failed: %s", record_id, job.id, failed)
            if policy.on_error is OnError.FAIL:
                break

    def _store_conflicts(self, conflicts: list[SyncConflict]) -> None:
        if conflicts:
            self._db.add_conflicts(conflicts)
            logger.info(
                "Logged %d conflict(s) on record %s", len(conflicts), conflicts[0].record_id
            )

    def _finish(
        self,
        job: SyncJob,
        config: SyncConfig,
        log_id: int,
        start: datetime,
        state: _RunState,
        warnings: list[SyncError],
        system_error: SyncError | None = None,
    ) -> SyncResult:
        """Build, persist and return the result of a run."""
        end = self._clock()
        if system_error is not None:
            status = SyncStatus.ERROR
            errors = (*warnings, *state.errors, system_error)
        else:
            status = compute_status(state.processed, state.success, state.error)
            errors = (*warnings, *state.errors)

        result = SyncResult(
            job_id=job.id,
            status=status,
            records_processed=state.processed,
            records_success=state.success,
            records_error=state.error,
            errors=errors,
            duration_seconds=max(0.0, (end - start).total_seconds()),
            start_time=start,
            end_time=end,
            log_id=log_id,
        )
        self._db.finish_log(log_id, result)

        if system_error is None:
            self._db.mark_job_synced(job.id, start)

        logger.info(
            "Sync finished: %s status=%s processed=%d success=%d error=%d (%.2fs)",
            job.id,
            status.value,
            result.records_processed,
            result.records_success,
            result.records_error,
            result.duration_seconds,
        )
        if config.error_handling.notify_on_error and (system_error is not None or state.error):
            logger.error(
                "Sync job %s (%s) ended with errors: status=%s, %d record error(s)",
                job.id,
                job.name,
                status.value,
                state.error,
            )
        return result


def _record_id(record: Record, key_field: str, position: int) -> str:
    """Identify a record in errors: its key, or its 1-based position."""
    key = record.get(key_field)
    return str(key) if key is not None and key != "" else str(position)
