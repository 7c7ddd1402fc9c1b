"""
Error taxonomy for pipeline construction and execution.

- InvalidPipelineError: malformed pipeline definition (raised at construction)
- AlreadyStartedError: start() called on a run that is not idle
- StageFailure: a stage's work unit failed; recorded on the run, never raised
  out of the runner task
- UnknownStageTypeError: registry lookup for an unregistered stage type
"""
from dataclasses import dataclass
from typing import Any, Dict


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class InvalidPipelineError(PipelineError, ValueError):
    """Pipeline definition is empty, has a bad weight, or repeats a stage name."""


class AlreadyStartedError(PipelineError, RuntimeError):
    """A run can only be started once, from the idle state."""


class UnknownStageTypeError(PipelineError, KeyError):
    """No stage plugin is registered under the requested type."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ""


class StageFailure(PipelineError):
    """
    A stage's work unit failed.

    Carries the failing stage's name and index along with the underlying
    exception (also chained as __cause__).
    """

    def __init__(self, stage_name: str, stage_index: int, cause: BaseException):
        self.stage_name = stage_name
        self.stage_index = stage_index
        self.cause = cause
        super().__init__(f"Stage '{stage_name}' (#{stage_index}) failed: {cause}")
        self.__cause__ = cause

    def to_info(self) -> "FailureInfo":
        return FailureInfo(
            stage_name=self.stage_name,
            stage_index=self.stage_index,
            cause=self.cause,
        )


@dataclass(frozen=True)
class FailureInfo:
    """Read-only description of why a run failed."""
    stage_name: str
    stage_index: int
    cause: BaseException

    @property
    def message(self) -> str:
        return str(self.cause) or type(self.cause).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage_name": self.stage_name,
            "stage_index": self.stage_index,
            "error_type": type(self.cause).__name__,
            "message": self.message,
        }
