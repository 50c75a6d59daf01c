"""
Per-frame execute cycle.

    input buffer ──► TensorMarshaler (in) ──► loaded model ──► /255, to CPU
                                                              │
    output buffer ◄── TensorMarshaler (out) ◄─────────────────┘

The host drives a FramePipeline through configure(), get_output_format(),
execute() and report_error(). Every failure before inference aborts only the
current call; the loaded model and reusable buffers survive for the next one.
"""

import logging
from enum import Enum

import numpy as np
import torch

from torchframe.config import ImageDownload, PipelineConfig, resolve_device
from torchframe.errors import InferenceFailure, MissingInput, PipelineError
from torchframe.marshal import CHANNELS, MODEL_CHANNELS, TensorMarshaler
from torchframe.model_cache import ModelCache
from torchframe.models import load_model
from torchframe.state import (
    ErrorReporter,
    ExecuteResult,
    ExecutionState,
    info_channels,
    info_table,
)

logger = logging.getLogger(__name__)

# Single-buffer design: the new frame always lands in slot 0.
OUTPUT_SLOT = 0


class Stage(Enum):
    START = "start"
    VALIDATED_INPUT = "validated_input"
    MODEL_READY = "model_ready"
    MARSHALED = "marshaled"
    INFERRED = "inferred"
    WRITTEN = "written"
    DONE = "done"
    ERROR = "error"


class ArrayFrameInput:
    """Frame source backed by an in-memory (H,W,4) uint8 array."""

    def __init__(self, pixels):
        pixels = np.asarray(pixels)
        if pixels.ndim != 3 or pixels.shape[2] != CHANNELS:
            raise ValueError(f"expected (H,W,{CHANNELS}) pixels, got {pixels.shape}")
        self.pixels = pixels
        self.height, self.width = pixels.shape[:2]
        self.last_download = None

    def download(self, mode=ImageDownload.INSTANT):
        self.last_download = mode
        return self.pixels


class OutputBuffers:
    """Host-owned output: one (H,W,4) float32 slot filled in place."""

    def __init__(self, width, height, slots=1):
        self.width = width
        self.height = height
        self.cpu_pixel_data = [
            np.zeros((height, width, CHANNELS), dtype=np.float32) for _ in range(slots)
        ]
        self.new_cpu_pixel_data_location = None

    @classmethod
    def for_input(cls, frame_input):
        fmt = FramePipeline.get_output_format(frame_input)
        if fmt is None:
            return cls(0, 0)
        return cls(*fmt)


class FramePipeline:
    def __init__(self, config=None, device="auto", loader=load_model):
        self.device = resolve_device(device)
        self.config = config or PipelineConfig()
        self.cache = ModelCache(self.device, loader=loader)
        self.marshaler = TensorMarshaler(self.device)
        self.state = ExecutionState()
        self.reporter = ErrorReporter()
        self.stage = Stage.START

    # -----------------------------------------------------------------------
    # Host interface
    # -----------------------------------------------------------------------
    def configure(self, config=None, **changes):
        if config is None:
            config = self.config
        self.config = config.with_changes(**changes) if changes else config
        return self.config

    @staticmethod
    def get_output_format(frame_input):
        """Output geometry follows the input. None when nothing is connected."""
        if frame_input is None:
            return None
        return frame_input.width, frame_input.height

    def report_error(self):
        return self.reporter.render(self.state)

    def info_channels(self):
        return info_channels(self.state)

    def info_table(self):
        return info_table(self.state)

    # -----------------------------------------------------------------------
    # Execute cycle
    # -----------------------------------------------------------------------
    def execute(self, output, frame_input):
        self.stage = Stage.START
        self.state.reset()

        try:
            pixels = self._validate_input(frame_input)
            self.stage = Stage.VALIDATED_INPUT

            model = self.cache.ensure_loaded(self.config.model_file)
            self.stage = Stage.MODEL_READY

            width, height = output.width, output.height
            try:
                tensor = self.marshaler.to_model_input(pixels, width, height)
            except ValueError:
                # Geometry mismatch is a caller contract violation, not an error code.
                self.stage = Stage.ERROR
                raise
            self.stage = Stage.MARSHALED

            result = self._infer(model, tensor, width, height)
            self.stage = Stage.INFERRED
        except PipelineError as err:
            return self._abort(err)

        self.marshaler.from_model_output(
            result, width, height, dst=output.cpu_pixel_data[OUTPUT_SLOT],
        )
        self.stage = Stage.WRITTEN

        output.new_cpu_pixel_data_location = OUTPUT_SLOT
        self.stage = Stage.DONE
        return self._result(OUTPUT_SLOT)

    def _validate_input(self, frame_input):
        if frame_input is None:
            raise MissingInput()
        pixels = frame_input.download(self.config.image_download)
        if pixels is None:
            raise MissingInput()
        return pixels

    def _infer(self, model, tensor, width, height):
        try:
            with torch.inference_mode():
                out = model.forward(tensor)
                # Downstream marshaling needs direct element access
                out = out.div(255.0).to("cpu", dtype=torch.float32)
        except Exception as exc:
            raise InferenceFailure(str(exc).strip() or None) from exc

        expected = (1, MODEL_CHANNELS, height, width)
        if tuple(out.shape) != expected:
            raise InferenceFailure(
                f"model output has shape {tuple(out.shape)}, expected {expected}"
            )
        return out

    def _abort(self, err):
        self.state.fail(err)
        self.stage = Stage.ERROR
        logger.warning("Execute #%d aborted: %s", self.state.execute_count, err.message)
        return self._result(None)

    def _result(self, location):
        return ExecuteResult(
            error_code=self.state.error_code,
            message=self.report_error(),
            execute_count=self.state.execute_count,
            stage=self.stage.value,
            output_location=location,
        )

    def close(self):
        self.cache.release()
        self.marshaler.release()
