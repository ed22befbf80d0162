"""Pipeline executor with suspend/resume for human-in-the-loop approval."""

from __future__ import annotations

import copy
import json
import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable

import pydantic

from .errors import (
    ApprovalTimeoutError,
    ConcurrentResumeError,
    InvalidStateError,
    NotFoundError,
    ResuspensionError,
    StageFailedError,
    ValidationError,
    WorkflowError,
)
from .instance import PipelineInstance, PipelineStatus, StageEvent, Suspension, utcnow
from .stage import Continue, PipelineDefinition, StageContext, StageSpec, Suspend
from .store import SuspensionStore

logger = logging.getLogger(__name__)

APPROVAL_TIMEOUT = "approval timeout"


def validate_payload(model: type[pydantic.BaseModel], data: Any, what: str) -> dict[str, Any]:
    """Validate `data` against a pydantic model and return the plain dict."""
    try:
        return model.model_validate(data if data is not None else {}).model_dump()
    except pydantic.ValidationError as e:
        errors = e.errors(include_url=False)
        summary = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}" for err in errors
        )
        raise ValidationError(f"Invalid {what}: {summary}", errors=errors) from e


def _check_serializable(data: dict[str, Any], what: str) -> None:
    # Stores persist plain JSON; reject anything json.dumps cannot encode.
    try:
        json.dumps(data)
    except (TypeError, ValueError) as e:
        raise WorkflowError(f"{what} are not JSON-serializable: {e}") from e


class PipelineExecutor:
    """Runs pipeline stages in order, persisting at every stage boundary.

    Usage:
        executor = PipelineExecutor(InMemorySuspensionStore())
        instance = executor.start(investment_pipeline, {"symbol": "NVDA", ...})
        if instance.is_suspended:
            instance = executor.resume(instance.id, {"approved": True, ...})
    """

    def __init__(
        self,
        store: SuspensionStore,
        definitions: Iterable[PipelineDefinition] = (),
        *,
        max_suspension: timedelta | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._definitions: dict[str, PipelineDefinition] = {}
        self._max_suspension = max_suspension
        self._clock = clock
        # Ids with a resume in flight; an entry lives only while its resume runs.
        self._resuming: set[str] = set()
        self._resuming_guard = threading.Lock()
        for definition in definitions:
            self.register(definition)

    @property
    def store(self) -> SuspensionStore:
        return self._store

    def register(self, definition: PipelineDefinition) -> None:
        existing = self._definitions.get(definition.id)
        if existing is not None and existing is not definition:
            logger.info("Replacing definition for pipeline '%s'", definition.id)
        self._definitions[definition.id] = definition

    def definition(self, pipeline_id: str) -> PipelineDefinition:
        try:
            return self._definitions[pipeline_id]
        except KeyError:
            raise NotFoundError(f"Unknown pipeline '{pipeline_id}'") from None

    # -- public operations --

    def start(self, definition: PipelineDefinition, initial_input: Any) -> PipelineInstance:
        """Validate input, create an instance and run it until completion or suspension."""
        self.register(definition)
        state = validate_payload(definition.input_model, initial_input, f"input for '{definition.id}'")

        now = self._clock()
        instance = PipelineInstance(
            pipeline_id=definition.id,
            definition_version=definition.version,
            state=state,
            created_at=now,
            updated_at=now,
        )
        self._store.save(instance, expected_revision=-1)
        logger.info("Started pipeline '%s' instance %s", definition.id, instance.id)
        return self._advance(definition, instance, resume_data=None)

    def resume(self, instance_id: str, resume_input: Any) -> PipelineInstance:
        """Re-enter the paused stage of a suspended instance with `resume_input`."""
        self._claim(instance_id)
        try:
            instance = self._store.load(instance_id)
            if instance.status is not PipelineStatus.SUSPENDED:
                raise InvalidStateError(
                    f"Instance '{instance_id}' is {instance.status.value}, not suspended"
                )

            definition = self.definition(instance.pipeline_id)
            if definition.version != instance.definition_version:
                raise InvalidStateError(
                    f"Instance '{instance_id}' was created by version {instance.definition_version} "
                    f"of '{definition.id}', current version is {definition.version}"
                )

            stage = definition.stage_at(instance.stage_index)
            if self._is_expired(instance):
                self._expire(instance, stage)
                raise ApprovalTimeoutError(instance_id)

            if stage.resume_model is not None:
                resume_data = validate_payload(
                    stage.resume_model, resume_input, f"resume data for stage '{stage.name}'"
                )
            else:
                resume_data = dict(resume_input or {})

            # Claim the instance; a concurrent resume that loaded the same
            # snapshot fails here on the revision check.
            instance.status = PipelineStatus.RUNNING
            instance.suspension = None
            instance.updated_at = self._clock()
            self._save(instance)
            logger.info("Resuming instance %s at stage '%s'", instance_id, stage.name)

            return self._advance(definition, instance, resume_data=resume_data)
        finally:
            self._release(instance_id)

    def get(self, instance_id: str) -> PipelineInstance:
        return self._store.load(instance_id)

    def list_suspended(self) -> list[PipelineInstance]:
        return self._store.list(PipelineStatus.SUSPENDED)

    def expire_stale(self) -> list[PipelineInstance]:
        """Fail every suspended instance that has waited longer than `max_suspension`."""
        expired = []
        for instance in self.list_suspended():
            if not self._is_expired(instance):
                continue
            definition = self._definitions.get(instance.pipeline_id)
            stage_name = instance.suspension.stage_name if instance.suspension else "?"
            stage = definition.stage_at(instance.stage_index) if definition else None
            try:
                self._expire(instance, stage, stage_name=stage_name)
            except ConcurrentResumeError:
                logger.warning("Instance %s changed while expiring; skipped", instance.id)
                continue
            expired.append(instance)
        return expired

    # -- internals --

    def _claim(self, instance_id: str) -> None:
        with self._resuming_guard:
            if instance_id in self._resuming:
                raise ConcurrentResumeError(instance_id, "a resume is already in progress")
            self._resuming.add(instance_id)

    def _release(self, instance_id: str) -> None:
        with self._resuming_guard:
            self._resuming.discard(instance_id)

    def _save(self, instance: PipelineInstance) -> None:
        self._store.save(instance, expected_revision=instance.revision)

    def _is_expired(self, instance: PipelineInstance) -> bool:
        if self._max_suspension is None or instance.suspension is None:
            return False
        return self._clock() - instance.suspension.suspended_at > self._max_suspension

    def _expire(
        self,
        instance: PipelineInstance,
        stage: StageSpec | None,
        *,
        stage_name: str | None = None,
    ) -> None:
        name = stage.name if stage is not None else (stage_name or "?")
        logger.warning("Instance %s expired while suspended at '%s'", instance.id, name)
        self._mark_failed(instance, name, APPROVAL_TIMEOUT)

    def _mark_failed(self, instance: PipelineInstance, stage_name: str, message: str) -> None:
        now = self._clock()
        instance.status = PipelineStatus.FAILED
        instance.suspension = None
        instance.error = message
        instance.updated_at = now
        instance.history.append(StageEvent(stage_name, "failed", now, message))
        self._save(instance)

    def _run_stage(
        self, stage: StageSpec, instance: PipelineInstance, resume_data: dict[str, Any] | None
    ) -> Continue | Suspend:
        missing = [f for f in stage.reads if f not in instance.state]
        if missing:
            raise WorkflowError(f"missing required state fields: {', '.join(missing)}")

        ctx = StageContext(
            state=copy.deepcopy(instance.state),
            resume_data=resume_data,
            instance_id=instance.id,
            stage_name=stage.name,
        )
        outcome = stage.execute(ctx)

        if isinstance(outcome, Suspend):
            if resume_data is not None:
                raise ResuspensionError(stage.name)
            _check_serializable(outcome.payload, "suspension payload values")
            return outcome
        if isinstance(outcome, Continue):
            undeclared = sorted(set(outcome.updates) - set(stage.writes))
            if undeclared:
                raise WorkflowError(f"wrote undeclared state fields: {', '.join(undeclared)}")
            _check_serializable(outcome.updates, "state updates")
            return outcome
        raise WorkflowError(
            f"returned {type(outcome).__name__}, expected Continue or Suspend"
        )

    def _persist(
        self,
        instance: PipelineInstance,
        stage: StageSpec,
        before: tuple[dict[str, Any], int, int],
    ) -> None:
        """Save a stage boundary; on failure roll back and record the instance as failed."""
        try:
            self._save(instance)
        except ConcurrentResumeError:
            raise
        except Exception as e:
            state, stage_index, history_len = before
            instance.state = state
            instance.stage_index = stage_index
            del instance.history[history_len:]
            instance.suspension = None
            instance.result = None
            message = f"could not persist state: {e}"
            logger.error("Stage '%s' of instance %s failed: %s", stage.name, instance.id, message)
            self._mark_failed(instance, stage.name, message)
            raise StageFailedError(instance.id, stage.name, message) from e

    def _advance(
        self,
        definition: PipelineDefinition,
        instance: PipelineInstance,
        resume_data: dict[str, Any] | None,
    ) -> PipelineInstance:
        while True:
            stage = definition.stage_at(instance.stage_index)
            try:
                outcome = self._run_stage(stage, instance, resume_data)
            except Exception as e:
                logger.error("Stage '%s' of instance %s failed: %s", stage.name, instance.id, e)
                self._mark_failed(instance, stage.name, str(e))
                raise StageFailedError(instance.id, stage.name, str(e)) from e

            now = self._clock()
            instance.updated_at = now
            before = (dict(instance.state), instance.stage_index, len(instance.history))

            if isinstance(outcome, Suspend):
                instance.status = PipelineStatus.SUSPENDED
                instance.suspension = Suspension(
                    reason=outcome.reason,
                    payload=dict(outcome.payload),
                    stage_name=stage.name,
                    suspended_at=now,
                )
                instance.history.append(StageEvent(stage.name, "suspended", now, outcome.reason))
                self._persist(instance, stage, before)
                logger.info(
                    "Instance %s suspended at '%s': %s", instance.id, stage.name, outcome.reason
                )
                return instance

            instance.state.update(outcome.updates)
            instance.history.append(StageEvent(stage.name, "continued", now))

            if instance.stage_index == definition.terminal_index:
                instance.status = PipelineStatus.COMPLETED
                instance.result = dict(outcome.updates)
                self._persist(instance, stage, before)
                logger.info("Instance %s completed", instance.id)
                return instance

            instance.stage_index += 1
            resume_data = None
            self._persist(instance, stage, before)
