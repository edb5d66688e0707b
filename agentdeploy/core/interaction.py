"""
Operator interaction — the confirmation points of a run.

The core never prompts directly. It asks an Operator, which the CLI
implements with click prompts and tests implement with scripted
answers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from agentdeploy.core.models.config import RequiredVariable


class Operator(ABC):
    """Whoever answers confirmations and supplies missing values."""

    @abstractmethod
    def confirm(self, question: str, default: bool = True) -> bool:
        """Yes/no at a confirmation point."""

    def provide(self, requirement: RequiredVariable, current: str = "") -> str | None:
        """Value for a missing requirement, or None to abort guided input."""
        return None

    @property
    def can_provide(self) -> bool:
        """Whether guided input is possible at all."""
        return False

    def report(self, message: str) -> None:
        """Progress line for the operator."""


class AutoOperator(Operator):
    """Non-interactive operator: fixed answer to every confirmation."""

    def __init__(self, answer: bool = True):
        self._answer = answer
        self.questions: list[str] = []
        self.messages: list[str] = []

    def confirm(self, question: str, default: bool = True) -> bool:
        self.questions.append(question)
        return self._answer

    def report(self, message: str) -> None:
        self.messages.append(message)


class ScriptedOperator(AutoOperator):
    """Answers from queues; used to drive guided input in tests and mock runs."""

    def __init__(
        self,
        answers: list[bool] | None = None,
        values: dict[str, str] | None = None,
        default_answer: bool = True,
    ):
        super().__init__(default_answer)
        self._answers = list(answers or [])
        self._values = dict(values or {})
        self.requested: list[str] = []

    @property
    def can_provide(self) -> bool:
        return True

    def confirm(self, question: str, default: bool = True) -> bool:
        self.questions.append(question)
        if self._answers:
            return self._answers.pop(0)
        return self._answer

    def provide(self, requirement: RequiredVariable, current: str = "") -> str | None:
        self.requested.append(requirement.key)
        return self._values.get(requirement.key)
