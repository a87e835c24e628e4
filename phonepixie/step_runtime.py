from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger("phonepixie.steps")

T = TypeVar("T")


@dataclass(frozen=True)
class StepResult(Generic[T]):
    """Outcome of one fallible step: a value on success, a reason on failure."""
    ok: bool
    value: Optional[T] = None
    reason: str = ""
    step: str = ""

    @classmethod
    def success(cls, value: T) -> "StepResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, reason: str) -> "StepResult[T]":
        return cls(ok=False, reason=reason)


@dataclass
class FallbackStep(Generic[T]):
    """Named fallible step used by FallbackChain."""
    name: str
    fn: Callable[..., StepResult[T]]


class FallbackChain(Generic[T]):
    """Ordered list of fallible steps composed left to right."""

    def __init__(self, steps: List[FallbackStep[T]]) -> None:
        """Purpose: Initialize the chain with steps in preference order.
        Inputs/Outputs: Input is a list of FallbackStep; no return value.
        Side Effects / State: Stores the step list for later execution.
        Dependencies: None beyond FallbackStep definitions.
        Failure Modes: An empty list makes run() return a failure.
        If Removed: Classification and generation lose their deterministic fallbacks.
        Testing Notes: First failing, second succeeding -> second value returned.
        """
        # Store the steps; the last one should be infallible.
        self._steps = steps

    def run(self, *args: Any) -> StepResult[T]:
        """Purpose: Execute steps in order and stop at the first success.
        Inputs/Outputs: Positional args are passed to every step; returns the winning
            StepResult tagged with its step name, or the last failure.
        Side Effects / State: Debug-logs each failed step.
        Dependencies: FallbackStep.fn contract (returns StepResult, never raises).
        Failure Modes: Exceptions escaping a step propagate; steps are expected to
            convert their own errors into failures.
        If Removed: Callers fall back to nested try/except control flow.
        Testing Notes: Verify short-circuit: later steps are not invoked.
        """
        # Short-circuit on the first successful step.
        last: StepResult[T] = StepResult.failure("no steps configured")
        for step in self._steps:
            result = step.fn(*args)
            if result.ok:
                return StepResult(ok=True, value=result.value, step=step.name)
            logger.debug("step=%s failed reason=%s", step.name, result.reason)
            last = StepResult(ok=False, reason=result.reason, step=step.name)
        return last


@dataclass
class PipelineStep:
    """Step descriptor for the ordered orchestrator runner."""
    name: str
    fn: Callable[[object], None]
    skip_if: Optional[Callable[[object], bool]] = None
    always_run: bool = False


class StepRunner:
    """Deterministic step runner for the request pipeline stages."""

    def __init__(self, steps: List[PipelineStep]) -> None:
        # Store the pipeline steps for deterministic execution.
        self._steps = steps

    @property
    def step_names(self) -> List[str]:
        return [step.name for step in self._steps]

    def run(self, context: object) -> None:
        """Purpose: Execute steps in order with optional skip/always-run rules.
        Inputs/Outputs: Input is a mutable context object; no return value.
        Side Effects / State: Invokes step functions that may mutate context.
        Dependencies: Depends on PipelineStep.fn and PipelineStep.skip_if semantics.
        Failure Modes: Exceptions in step functions propagate to the caller.
        If Removed: The orchestrator cannot sequence gate, classify, query, and synthesize.
        Testing Notes: Verify skip_if and always_run logic with simple steps.
        """
        # Iterate steps and honor always_run/skip_if guards.
        for step in self._steps:
            if step.always_run:
                step.fn(context)
                continue
            if step.skip_if and step.skip_if(context):
                continue
            step.fn(context)
