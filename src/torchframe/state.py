from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from torchframe.errors import (
    BLANK_PATH_MESSAGE,
    LOAD_FAILURE_MESSAGE,
    MISSING_INPUT_MESSAGE,
    ErrorCode,
    PipelineError,
)

EXECUTE_COUNT_NAME = "executeCount"


class ExecutionState:
    """Per-pipeline scratch: latest error code, diagnostic text, execute counter."""

    def __init__(self):
        self.error_code = ErrorCode.NONE
        self.message = ""
        self.execute_count = 0

    def reset(self):
        # Counter is for observability only, nothing reads it back.
        self.execute_count += 1
        self.error_code = ErrorCode.NONE
        self.message = ""

    def fail(self, error: PipelineError):
        self.error_code = error.code
        self.message = error.message

    @property
    def ok(self):
        return self.error_code == ErrorCode.NONE


class ErrorReporter:
    """
    Maps the latest error code to the string shown to the host.
    Codes with a diagnostic (load / inference failure) show the captured text,
    the others show a canned message. Code 0 is always the empty string.
    """

    CANNED = {
        ErrorCode.NONE: "",
        ErrorCode.BLANK_PATH: BLANK_PATH_MESSAGE,
        ErrorCode.MISSING_INPUT: MISSING_INPUT_MESSAGE,
    }

    def render(self, state: ExecutionState) -> str:
        if state.error_code in self.CANNED:
            return self.CANNED[state.error_code]
        if state.error_code == ErrorCode.LOAD_FAILURE:
            return state.message or LOAD_FAILURE_MESSAGE
        return state.message


def info_channels(state: ExecutionState) -> Dict[str, float]:
    return {EXECUTE_COUNT_NAME: float(state.execute_count)}


def info_table(state: ExecutionState) -> List[Tuple[str, str]]:
    # One row, two columns: name / value.
    return [(EXECUTE_COUNT_NAME, "%d" % state.execute_count)]


@dataclass(frozen=True)
class ExecuteResult:
    error_code: ErrorCode
    message: str
    execute_count: int
    stage: str
    output_location: Optional[int] = None

    @property
    def ok(self):
        return self.error_code == ErrorCode.NONE
