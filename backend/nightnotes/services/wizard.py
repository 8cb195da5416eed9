"""
The five-step shutdown ritual as a small state machine.

    Step1  load before (1-5)        required
    Step2  open loops               skippable
    Step3  emotional residue        skippable
    Step4  tomorrow's anchor        required, non-blank
    Step5  load after (1-5)         required
    Complete                        terminal
"""
from __future__ import annotations
import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

from nightnotes.errors import ValidationError, WizardBlockedError
from nightnotes.models import local_now

TOTAL_STEPS = 5


class WizardStep(str, Enum):
    STEP1 = "Step1"
    STEP2 = "Step2"
    STEP3 = "Step3"
    STEP4 = "Step4"
    STEP5 = "Step5"
    COMPLETE = "Complete"


_ORDER = [
    WizardStep.STEP1, WizardStep.STEP2, WizardStep.STEP3,
    WizardStep.STEP4, WizardStep.STEP5, WizardStep.COMPLETE,
]
_SKIPPABLE = {WizardStep.STEP2, WizardStep.STEP3}


@dataclass(frozen=True)
class CompletedRitual:
    load_before: int
    load_after: int
    open_loops: Optional[str]
    emotional_residue: Optional[str]
    tomorrow_anchor: Optional[str]
    started_at: datetime
    completed_at: datetime
    duration_seconds: int
    load_delta: int


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.astimezone()


def _rating(value: Any, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
        raise ValidationError(f"{label} must be a whole number from 1 to 5.")
    return value


class RitualWizard:
    def __init__(
        self,
        started_at: Optional[datetime] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._clock = clock or local_now
        self.started_at = _aware(started_at) if started_at else _aware(self._clock())
        self.step = WizardStep.STEP1
        self.load_before: Optional[int] = None
        self.load_after: Optional[int] = None
        self.open_loops = ""
        self.emotional_residue = ""
        self.tomorrow_anchor = ""
        self.result: Optional[CompletedRitual] = None

    @property
    def step_number(self) -> int:
        return min(_ORDER.index(self.step) + 1, TOTAL_STEPS)

    @property
    def progress(self) -> float:
        return self.step_number / TOTAL_STEPS * 100

    # answers

    def rate_before(self, value: int) -> None:
        self._ensure_open()
        self.load_before = _rating(value, "Load before")

    def set_open_loops(self, text: Optional[str]) -> None:
        self._ensure_open()
        self.open_loops = text or ""

    def set_emotional_residue(self, text: Optional[str]) -> None:
        self._ensure_open()
        self.emotional_residue = text or ""

    def set_tomorrow_anchor(self, text: Optional[str]) -> None:
        self._ensure_open()
        self.tomorrow_anchor = text or ""

    def rate_after(self, value: int) -> None:
        self._ensure_open()
        self.load_after = _rating(value, "Load after")

    # transitions

    def can_continue(self) -> bool:
        if self.step == WizardStep.STEP1:
            return self.load_before is not None
        if self.step == WizardStep.STEP4:
            return len(self.tomorrow_anchor.strip()) > 0
        if self.step == WizardStep.STEP5:
            return self.load_after is not None
        return self.step != WizardStep.COMPLETE

    def advance(self) -> Optional[CompletedRitual]:
        """Move forward one step; returns the finished ritual on completion."""
        self._ensure_open()
        if not self.can_continue():
            raise WizardBlockedError(_BLOCKED_MESSAGES[self.step])
        self.step = _ORDER[_ORDER.index(self.step) + 1]
        if self.step == WizardStep.COMPLETE:
            self.result = self._finish()
            return self.result
        return None

    def skip(self) -> None:
        if self.step not in _SKIPPABLE:
            raise WizardBlockedError(f"{self.step.value} cannot be skipped.")
        self.advance()

    def _finish(self) -> CompletedRitual:
        completed_at = _aware(self._clock())
        elapsed = (completed_at - self.started_at).total_seconds()
        return CompletedRitual(
            load_before=self.load_before,
            load_after=self.load_after,
            open_loops=self.open_loops or None,
            emotional_residue=self.emotional_residue or None,
            tomorrow_anchor=self.tomorrow_anchor or None,
            started_at=self.started_at,
            completed_at=completed_at,
            duration_seconds=max(0, math.floor(elapsed + 0.5)),
            load_delta=self.load_before - self.load_after,
        )

    def _ensure_open(self) -> None:
        if self.step == WizardStep.COMPLETE:
            raise ValidationError("This ritual is already complete.")

    @classmethod
    def replay(cls, answers: Any, clock: Optional[Callable[[], datetime]] = None) -> CompletedRitual:
        """Run a submitted answer set through every step and its guard."""
        wizard = cls(started_at=getattr(answers, "started_at", None), clock=clock)
        if answers.load_before is not None:
            wizard.rate_before(answers.load_before)
        wizard.advance()
        wizard.set_open_loops(answers.open_loops)
        wizard.advance()
        wizard.set_emotional_residue(answers.emotional_residue)
        wizard.advance()
        wizard.set_tomorrow_anchor(answers.tomorrow_anchor)
        wizard.advance()
        if answers.load_after is not None:
            wizard.rate_after(answers.load_after)
        return wizard.advance()


_BLOCKED_MESSAGES = {
    WizardStep.STEP1: "Choose how heavy your mind feels before continuing.",
    WizardStep.STEP4: "Name one thing you'll do first tomorrow.",
    WizardStep.STEP5: "Choose how heavy your mind feels now.",
}
