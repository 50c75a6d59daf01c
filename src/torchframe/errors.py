from enum import IntEnum


class ErrorCode(IntEnum):
    NONE = 0
    BLANK_PATH = 1
    LOAD_FAILURE = 2
    MISSING_INPUT = 3
    INFERENCE_FAILURE = 4


BLANK_PATH_MESSAGE = "The requested model file path is blank."
LOAD_FAILURE_MESSAGE = "error loading the model"
MISSING_INPUT_MESSAGE = "You must connect an input TOP."


class PipelineError(Exception):
    """
    Base for every per-invocation failure.
    Never fatal to the pipeline instance: the current execute call aborts,
    the next one starts clean.
    """

    code = ErrorCode.NONE
    default_message = ""

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class LoadError(PipelineError):
    pass


class BlankModelPath(LoadError):
    code = ErrorCode.BLANK_PATH
    default_message = BLANK_PATH_MESSAGE


class ModelLoadFailure(LoadError):
    code = ErrorCode.LOAD_FAILURE
    default_message = LOAD_FAILURE_MESSAGE


class MissingInput(PipelineError):
    code = ErrorCode.MISSING_INPUT
    default_message = MISSING_INPUT_MESSAGE


class InferenceFailure(PipelineError):
    code = ErrorCode.INFERENCE_FAILURE
    default_message = "inference failed"
