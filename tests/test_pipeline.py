"""
End-to-end tests for FramePipeline.

Drives the execute cycle the way a host would: configure, size the output from
get_output_format, execute, then read report_error and the info surfaces.
"""

import numpy as np
import pytest
import torch

from torchframe.config import ImageDownload, PipelineConfig
from torchframe.errors import ErrorCode
from torchframe.models import BaseModel
from torchframe.pipeline import ArrayFrameInput, FramePipeline, OutputBuffers, Stage


class NoPixelsInput:
    """Connected source whose download produced nothing."""

    width = 4
    height = 4

    def download(self, mode=ImageDownload.INSTANT):
        return None


class ExplodingModel(BaseModel):
    def forward(self, tensor):
        raise RuntimeError("shape mismatch in graph")


def run_frame(pipeline, frame_input):
    output = OutputBuffers.for_input(frame_input)
    return pipeline.execute(output, frame_input), output


@pytest.fixture
def identity_pipeline(identity_model_path, counting_loader):
    pipeline = FramePipeline(
        PipelineConfig(model_file=identity_model_path), device="cpu", loader=counting_loader,
    )
    yield pipeline
    pipeline.close()


@pytest.mark.unit
def test_missing_input_reports_code_3(identity_model_path) -> None:
    """No input connected: error 3, no output written."""
    pipeline = FramePipeline(PipelineConfig(model_file=identity_model_path), device="cpu")
    output = OutputBuffers(4, 4)

    result = pipeline.execute(output, None)

    assert result.error_code == ErrorCode.MISSING_INPUT
    assert result.message == "You must connect an input TOP."
    assert pipeline.report_error() == "You must connect an input TOP."
    assert result.output_location is None
    assert output.new_cpu_pixel_data_location is None
    assert np.all(output.cpu_pixel_data[0] == 0.0)
    assert result.stage == Stage.ERROR.value
    assert not pipeline.cache.is_loaded


@pytest.mark.unit
def test_failed_download_reports_missing_input() -> None:
    pipeline = FramePipeline(PipelineConfig(model_file="x.pt"), device="cpu")
    result, output = run_frame(pipeline, NoPixelsInput())

    assert result.error_code == ErrorCode.MISSING_INPUT
    assert output.new_cpu_pixel_data_location is None


@pytest.mark.unit
def test_missing_input_checked_before_model(pixels) -> None:
    """Blank path and no input: the input check wins."""
    pipeline = FramePipeline(PipelineConfig(model_file=""), device="cpu")
    result = pipeline.execute(OutputBuffers(4, 4), None)
    assert result.error_code == ErrorCode.MISSING_INPUT


@pytest.mark.unit
def test_blank_model_path_reports_code_1(pixels) -> None:
    pipeline = FramePipeline(PipelineConfig(model_file=""), device="cpu")
    result, output = run_frame(pipeline, ArrayFrameInput(pixels(8, 8)))

    assert result.error_code == ErrorCode.BLANK_PATH
    assert pipeline.report_error() == "The requested model file path is blank."
    assert output.new_cpu_pixel_data_location is None
    assert pipeline.marshaler.buffer_shape is None


@pytest.mark.integration
def test_identity_model_end_to_end(identity_pipeline, pixels) -> None:
    """64x64 frame of 200s through an identity graph: RGB ~ 200/255, alpha exactly 1."""
    before = identity_pipeline.state.execute_count
    result, output = run_frame(identity_pipeline, ArrayFrameInput(pixels(64, 64, value=200)))

    assert result.ok
    assert result.message == ""
    assert result.stage == Stage.DONE.value
    assert result.output_location == 0
    assert output.new_cpu_pixel_data_location == 0

    frame = output.cpu_pixel_data[0]
    assert frame.shape == (64, 64, 4)
    np.testing.assert_allclose(frame[:, :, :3], 200.0 / 255.0, rtol=1e-6)
    assert np.all(frame[:, :, 3] == 1.0)
    assert identity_pipeline.state.execute_count == before + 1
    assert result.execute_count == before + 1


@pytest.mark.integration
def test_identity_model_preserves_pixels(identity_pipeline, pixels) -> None:
    src = pixels(12, 20, seed=7)
    result, output = run_frame(identity_pipeline, ArrayFrameInput(src))

    assert result.ok
    np.testing.assert_allclose(output.cpu_pixel_data[0][:, :, :3] * 255.0, src[:, :, :3], atol=1e-3)


@pytest.mark.integration
def test_same_model_path_deserialized_once(identity_pipeline, counting_loader, pixels) -> None:
    frame = ArrayFrameInput(pixels(16, 16))
    run_frame(identity_pipeline, frame)
    run_frame(identity_pipeline, frame)

    assert len(counting_loader.calls) == 1


@pytest.mark.integration
def test_model_output_is_used(half_model_path, pixels) -> None:
    pipeline = FramePipeline(PipelineConfig(model_file=half_model_path), device="cpu")
    result, output = run_frame(pipeline, ArrayFrameInput(pixels(8, 8, value=200)))

    assert result.ok
    np.testing.assert_allclose(output.cpu_pixel_data[0][:, :, :3], 100.0 / 255.0, rtol=1e-6)


@pytest.mark.integration
def test_load_failure_then_recovery(identity_pipeline, malformed_model_path, identity_model_path, pixels) -> None:
    frame = ArrayFrameInput(pixels(8, 8))
    assert run_frame(identity_pipeline, frame)[0].ok

    identity_pipeline.configure(model_file=malformed_model_path)
    result, output = run_frame(identity_pipeline, frame)

    assert result.error_code == ErrorCode.LOAD_FAILURE
    assert result.message
    assert identity_pipeline.report_error() == result.message
    assert output.new_cpu_pixel_data_location is None
    # The stale model stays loaded but was not used for this frame.
    assert identity_pipeline.cache.loaded_path == identity_model_path

    identity_pipeline.configure(model_file=identity_model_path)
    result, output = run_frame(identity_pipeline, frame)

    assert result.ok
    assert identity_pipeline.report_error() == ""


@pytest.mark.integration
def test_resize_reallocates_input_buffer_once(identity_pipeline, pixels) -> None:
    run_frame(identity_pipeline, ArrayFrameInput(pixels(16, 16)))
    run_frame(identity_pipeline, ArrayFrameInput(pixels(16, 16)))
    assert identity_pipeline.marshaler.realloc_count == 1

    result, output = run_frame(identity_pipeline, ArrayFrameInput(pixels(10, 24)))

    assert result.ok
    assert identity_pipeline.marshaler.realloc_count == 2
    assert identity_pipeline.marshaler.buffer_shape == (1, 10, 24, 4)
    assert output.cpu_pixel_data[0].shape == (10, 24, 4)


@pytest.mark.unit
def test_inference_exception_is_reported(pixels) -> None:
    pipeline = FramePipeline(
        PipelineConfig(model_file="boom.pt"),
        device="cpu",
        loader=lambda path, device: ExplodingModel(path, device),
    )
    result, output = run_frame(pipeline, ArrayFrameInput(pixels(4, 4)))

    assert result.error_code == ErrorCode.INFERENCE_FAILURE
    assert "shape mismatch in graph" in result.message
    assert output.new_cpu_pixel_data_location is None


@pytest.mark.unit
def test_error_only_reflects_latest_call(pixels) -> None:
    pipeline = FramePipeline(PipelineConfig(model_file=""), device="cpu")
    pipeline.execute(OutputBuffers(4, 4), None)
    assert pipeline.report_error() == "You must connect an input TOP."

    run_frame(pipeline, ArrayFrameInput(pixels(4, 4)))
    assert pipeline.report_error() == "The requested model file path is blank."


@pytest.mark.unit
def test_info_surfaces_track_execute_count() -> None:
    pipeline = FramePipeline(device="cpu")
    for _ in range(3):
        pipeline.execute(OutputBuffers(2, 2), None)

    assert pipeline.info_channels() == {"executeCount": 3.0}
    assert pipeline.info_table() == [("executeCount", "3")]


@pytest.mark.unit
def test_download_mode_passed_to_source(pixels) -> None:
    pipeline = FramePipeline(device="cpu")
    pipeline.configure(image_download="Delayed")
    frame = ArrayFrameInput(pixels(4, 4))

    pipeline.execute(OutputBuffers.for_input(frame), frame)

    assert frame.last_download is ImageDownload.DELAYED


@pytest.mark.unit
def test_get_output_format_follows_input(pixels) -> None:
    assert FramePipeline.get_output_format(None) is None
    assert FramePipeline.get_output_format(ArrayFrameInput(pixels(3, 5))) == (5, 3)


@pytest.mark.integration
def test_close_releases_resources(identity_model_path, pixels) -> None:
    pipeline = FramePipeline(PipelineConfig(model_file=identity_model_path), device="cpu")
    run_frame(pipeline, ArrayFrameInput(pixels(4, 4)))
    pipeline.close()

    assert not pipeline.cache.is_loaded
    assert pipeline.marshaler.buffer_shape is None


@pytest.mark.unit
def test_device_fixed_at_construction() -> None:
    pipeline = FramePipeline(device="cpu")
    assert pipeline.device == torch.device("cpu")
    assert pipeline.cache.device == pipeline.device
    assert pipeline.marshaler.device == pipeline.device


class Upscale2xModel(BaseModel):
    def forward(self, tensor):
        return tensor.repeat_interleave(2, dim=2).repeat_interleave(2, dim=3)


class OneChannelModel(BaseModel):
    def forward(self, tensor):
        return tensor[:, :1]


def static_loader(model_cls):
    return lambda path, device: model_cls(path, device)


@pytest.mark.unit
@pytest.mark.parametrize("model_cls", [Upscale2xModel, OneChannelModel])
def test_wrong_output_shape_aborts_without_write(model_cls, pixels) -> None:
    """Output geometry other than (1,3,H,W) is an inference failure; the buffer stays untouched."""
    pipeline = FramePipeline(
        PipelineConfig(model_file="odd.pt"), device="cpu", loader=static_loader(model_cls),
    )
    frame = ArrayFrameInput(pixels(4, 4, value=200))
    output = OutputBuffers.for_input(frame)
    output.cpu_pixel_data[0][:] = 0.25

    result = pipeline.execute(output, frame)

    assert result.error_code == ErrorCode.INFERENCE_FAILURE
    assert "expected (1, 3, 4, 4)" in result.message
    assert result.stage == Stage.ERROR.value
    assert result.output_location is None
    assert output.new_cpu_pixel_data_location is None
    assert np.all(output.cpu_pixel_data[0] == 0.25)


@pytest.mark.integration
def test_geometry_mismatch_raises_and_marks_error(identity_pipeline, pixels) -> None:
    """Input/output size disagreement is a caller contract violation."""
    frame = ArrayFrameInput(pixels(4, 4))
    output = OutputBuffers(8, 8)

    with pytest.raises(ValueError):
        identity_pipeline.execute(output, frame)

    assert identity_pipeline.stage is Stage.ERROR
    assert output.new_cpu_pixel_data_location is None


@pytest.mark.integration
def test_onnx_identity_end_to_end(onnx_identity_model_path, pixels) -> None:
    pipeline = FramePipeline(PipelineConfig(model_file=onnx_identity_model_path), device="cpu")
    try:
        result, output = run_frame(pipeline, ArrayFrameInput(pixels(16, 24, value=200)))

        assert result.ok
        frame = output.cpu_pixel_data[0]
        np.testing.assert_allclose(frame[:, :, :3], 200.0 / 255.0, rtol=1e-6)
        assert np.all(frame[:, :, 3] == 1.0)
    finally:
        pipeline.close()
