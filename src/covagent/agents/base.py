"""Agent protocol shared by covagent agents."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TaskStatus(Enum):
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class TaskInput:
    """Input for an agent task."""

    task_type: str
    target: str


@dataclass
class TaskOutput:
    """Outcome of an agent task.

    Expected failures (bad report, missing tooling) are reported through
    ``status``/``errors`` rather than raised.
    """

    status: TaskStatus
    result: dict[str, Any] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status is TaskStatus.COMPLETED

    @classmethod
    def failure(cls, *errors: str) -> TaskOutput:
        return cls(status=TaskStatus.FAILED, errors=list(errors))


class BaseAgent(ABC):
    """Abstract base class for covagent agents."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name identifying this agent."""

    @abstractmethod
    async def run(self, task: TaskInput) -> TaskOutput:
        """Execute the agent's task.

        Args:
            task: The input task to process.

        Returns:
            The result of the task execution.
        """
