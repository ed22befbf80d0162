"""Name-keyed lookup of agents and pipeline definitions."""

from __future__ import annotations

from .agent import Agent
from .errors import NotFoundError
from .stage import PipelineDefinition


class Registry:
    def __init__(self):
        self._agents: dict[str, Agent] = {}
        self._workflows: dict[str, PipelineDefinition] = {}

    def register_agent(self, agent: Agent) -> Agent:
        self._agents[agent.name] = agent
        return agent

    def register_workflow(self, definition: PipelineDefinition) -> PipelineDefinition:
        self._workflows[definition.id] = definition
        return definition

    def agent(self, name: str) -> Agent:
        try:
            return self._agents[name]
        except KeyError:
            raise NotFoundError(
                f"Unknown agent '{name}'. Available: {', '.join(sorted(self._agents)) or 'none'}"
            ) from None

    def workflow(self, workflow_id: str) -> PipelineDefinition:
        try:
            return self._workflows[workflow_id]
        except KeyError:
            raise NotFoundError(
                f"Unknown workflow '{workflow_id}'. Available: {', '.join(sorted(self._workflows))}"
            ) from None

    @property
    def agents(self) -> list[Agent]:
        return list(self._agents.values())

    @property
    def workflows(self) -> list[PipelineDefinition]:
        return list(self._workflows.values())
