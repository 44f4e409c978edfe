from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

# A confirmation capability: given a question, answer yes (True) or no (False).
Confirm = Callable[[str], bool]

_YES = re.compile(r"^\s*(y|yes)\s*$", re.IGNORECASE)
_NO = re.compile(r"^\s*(n|no)\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class PolicyDecision:
    answered: bool
    approved: bool = False
    reason: str = ""


def evaluate_answer(user_input: Optional[str], *, default: Optional[bool] = None) -> PolicyDecision:
    """
    Interpret a typed answer. Only y/n/yes/no are accepted;
    ENTER maps to `default` when one is given.
    """
    s = (user_input or "").replace("\r", "")
    if _YES.match(s):
        return PolicyDecision(True, True, "yes")
    if _NO.match(s):
        return PolicyDecision(True, False, "no")
    if not s.strip() and default is not None:
        return PolicyDecision(True, default, "default")
    return PolicyDecision(False, reason="Please answer y or n.")


class ConsoleConfirm:
    """Ask on the terminal; re-prompts until a y/n answer is given. EOF means no."""

    def __init__(
        self,
        *,
        default: Optional[bool] = None,
        read: Callable[[str], str] = input,
        write: Callable[[str], None] = print,
    ) -> None:
        self.default = default
        self._read = read
        self._write = write

    def __call__(self, question: str) -> bool:
        hint = "[y/n]" if self.default is None else ("[Y/n]" if self.default else "[y/N]")
        while True:
            try:
                answer = self._read(f"{question} {hint} ")
            except EOFError:
                return False
            decision = evaluate_answer(answer, default=self.default)
            if decision.answered:
                return decision.approved
            self._write(decision.reason)


def assume_yes(question: str) -> bool:
    return True


def assume_no(question: str) -> bool:
    return False


@dataclass
class ScriptedConfirm:
    """Pre-supplied answers, consumed in order. Records every question asked."""
    answers: List[bool]
    asked: List[str] = field(default_factory=list)

    def __call__(self, question: str) -> bool:
        self.asked.append(question)
        if not self.answers:
            return False
        return self.answers.pop(0)


def scripted(answers: Iterable[bool]) -> ScriptedConfirm:
    return ScriptedConfirm(list(answers))
