"""Stage and pipeline definitions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Union

from pydantic import BaseModel


@dataclass(frozen=True)
class Continue:
    """Stage outcome: merge `updates` into the running state and move on."""

    updates: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Suspend:
    """Stage outcome: pause the pipeline until resume data arrives.

    `payload` is persisted verbatim and `reason` is surfaced to the approver.
    """

    reason: str
    payload: dict[str, Any] = field(default_factory=dict)


StageOutcome = Union[Continue, Suspend]


@dataclass
class StageContext:
    """Provided to each stage's execute function.

    Attributes:
        state: Copy of the accumulated pipeline state.
        resume_data: Validated resume payload on re-entry after suspension,
                     None on first entry.
        instance_id: Id of the pipeline instance being run.
        stage_name: Name of the stage being executed.
    """

    state: dict[str, Any]
    resume_data: dict[str, Any] | None = None
    instance_id: str = ""
    stage_name: str = ""

    @property
    def is_resumed(self) -> bool:
        return self.resume_data is not None


@dataclass
class StageSpec:
    """Declares one pipeline stage.

    A stage re-entered after suspension runs its execute function again, so
    anything externally observable it does (notifications, writes) must be
    safe to attempt twice or gated on `ctx.is_resumed`.

    Attributes:
        name: Unique stage identifier.
        execute: Called with a StageContext, returns Continue or Suspend.
        reads: State fields that must be present before the stage runs.
        writes: State fields the stage is allowed to add or overwrite.
        resume_model: Shape of the resume data, if the stage can suspend.
    """

    name: str
    execute: Callable[[StageContext], StageOutcome]
    reads: tuple[str, ...] = ()
    writes: tuple[str, ...] = ()
    resume_model: type[BaseModel] | None = None


@dataclass
class PipelineDefinition:
    """An ordered chain of stages plus the shape of its input.

    `version` identifies the state schema; instances created under one
    version cannot be resumed by a definition with another.
    """

    id: str
    name: str
    input_model: type[BaseModel]
    stages: list[StageSpec]
    purpose: str = ""
    version: int = 1

    def __post_init__(self) -> None:
        names = [s.name for s in self.stages]
        if not names:
            raise ValueError(f"Pipeline '{self.id}' must have at least one stage")
        if len(set(names)) != len(names):
            raise ValueError(f"Pipeline '{self.id}' has duplicate stage names: {names}")

    def stage_at(self, index: int) -> StageSpec:
        return self.stages[index]

    @property
    def terminal_index(self) -> int:
        return len(self.stages) - 1
