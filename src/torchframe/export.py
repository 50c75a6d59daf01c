"""Helpers that write model files the pipeline can load.

Real models come from an external training / export toolchain. These
pass-through graphs exist for smoke tests and benchmarking the marshaling
path without a trained network.
"""

import logging

import torch
import torch.nn as nn

logger = logging.getLogger(__name__)


class IdentityRGB(nn.Module):
    """Returns its (1,3,H,W) input unchanged."""

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return x


class ScaleRGB(nn.Module):
    """Multiplies every sample by a constant. Handy for checking the data path."""

    def __init__(self, scale: float = 1.0):
        super().__init__()
        self.scale = scale

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return x * self.scale


def export_torchscript(module, path):
    module.eval()
    scripted = torch.jit.script(module)
    scripted.save(str(path))
    logger.info("TorchScript export complete: %s", path)
    return path


def export_onnx(module, path, height=720, width=1280, opset_version=17):
    module.eval()
    dummy_input = torch.randn(1, 3, height, width) * 255.0
    torch.onnx.export(
        module,
        (dummy_input,),
        str(path),
        input_names=["input"],
        output_names=["output"],
        opset_version=opset_version,
        dynamo=False,
        dynamic_axes={
            "input": {2: "height", 3: "width"},
            "output": {2: "height", 3: "width"},
        },
    )
    logger.info("ONNX export complete: %s", path)
    return path
