from torchframe.config import ImageDownload, PipelineConfig
from torchframe.errors import (
    BlankModelPath,
    ErrorCode,
    InferenceFailure,
    LoadError,
    MissingInput,
    ModelLoadFailure,
    PipelineError,
)
from torchframe.marshal import TensorMarshaler
from torchframe.model_cache import ModelCache
from torchframe.pipeline import ArrayFrameInput, FramePipeline, OutputBuffers, Stage
from torchframe.state import ExecuteResult

__version__ = "0.1.0"

__all__ = [
    "ArrayFrameInput",
    "BlankModelPath",
    "ErrorCode",
    "ExecuteResult",
    "FramePipeline",
    "ImageDownload",
    "InferenceFailure",
    "LoadError",
    "MissingInput",
    "ModelCache",
    "ModelLoadFailure",
    "OutputBuffers",
    "PipelineConfig",
    "PipelineError",
    "Stage",
    "TensorMarshaler",
]
