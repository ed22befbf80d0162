"""market-agent-flow: market research agents and suspendable approval workflows.

Pipelines are ordered stages that either continue with state updates or
suspend for a human decision. Suspended instances are persisted and can be
resumed later, from the same or another process.
"""

__version__ = "0.1.0"

from .agent import Agent
from .app import Runtime, build_runtime
from .config import Settings, load_settings
from .errors import (
    ApprovalTimeoutError,
    ConcurrentResumeError,
    ConfigurationError,
    InvalidStateError,
    NotFoundError,
    ProviderError,
    ResuspensionError,
    StageFailedError,
    ValidationError,
    WorkflowError,
)
from .executor import PipelineExecutor
from .instance import PipelineInstance, PipelineStatus, Suspension
from .llm.adapter import LLMAdapter, LLMResponse, Message, ToolCall
from .memory import ConversationMemory
from .registry import Registry
from .stage import Continue, PipelineDefinition, StageContext, StageSpec, Suspend
from .store import InMemorySuspensionStore, JsonFileSuspensionStore, SuspensionStore
from .tools import ToolRegistry, ToolSpec

__all__ = [
    # Pipelines
    "PipelineExecutor",
    "PipelineDefinition",
    "StageSpec",
    "StageContext",
    "Continue",
    "Suspend",
    "PipelineInstance",
    "PipelineStatus",
    "Suspension",
    # Persistence
    "SuspensionStore",
    "InMemorySuspensionStore",
    "JsonFileSuspensionStore",
    "ConversationMemory",
    # Agents
    "Agent",
    "ToolSpec",
    "ToolRegistry",
    "LLMAdapter",
    "LLMResponse",
    "Message",
    "ToolCall",
    # Application
    "Registry",
    "Runtime",
    "build_runtime",
    "Settings",
    "load_settings",
    # Errors
    "WorkflowError",
    "ValidationError",
    "NotFoundError",
    "InvalidStateError",
    "ConcurrentResumeError",
    "ResuspensionError",
    "StageFailedError",
    "ApprovalTimeoutError",
    "ConfigurationError",
    "ProviderError",
]
