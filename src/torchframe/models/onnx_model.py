import logging

import numpy as np
import onnxruntime as ort
import torch

from torchframe.models.base_model import BaseModel

logger = logging.getLogger(__name__)


def build_providers(device, available=None):
    """Pick execution providers for a torch device.

    CUDA-family devices try TensorRT / CUDA / ROCm in that order; the CPU
    provider is always kept as the fallback.
    """
    if available is None:
        available = ort.get_available_providers()
    available = set(available)

    resolved = []
    if device.type == "cuda":
        gpu_priority = [
            ("TensorrtExecutionProvider", {"device_id": device.index or 0}),
            ("CUDAExecutionProvider", {"device_id": device.index or 0}),
            ("ROCMExecutionProvider", {"device_id": device.index or 0}),
        ]
        for ep_name, ep_opts in gpu_priority:
            if ep_name in available:
                resolved.append((ep_name, ep_opts))
                break
        else:
            logger.warning(
                "No GPU execution provider available, ONNX model runs on CPU. "
                "Available providers: %s", sorted(available)
            )

    if "CPUExecutionProvider" not in available:
        raise RuntimeError(
            "CPUExecutionProvider is not available. "
            f"Available providers: {sorted(available)}"
        )
    resolved.append("CPUExecutionProvider")
    return resolved


class OnnxModel(BaseModel):
    def __init__(self, path, device):
        super().__init__(path, device)

        so = ort.SessionOptions()
        so.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        so.execution_mode = ort.ExecutionMode.ORT_SEQUENTIAL

        self.providers = build_providers(device)
        self.session = ort.InferenceSession(
            path,
            sess_options=so,
            providers=self.providers,
        )

        inputs = self.session.get_inputs()
        if len(inputs) != 1:
            raise RuntimeError(
                f"Expected 1 image input, found {len(inputs)}: "
                f"{[x.name for x in inputs]}"
            )
        self.input_name = inputs[0].name
        self.output_name = self.session.get_outputs()[0].name

        # Detect precision
        if "float16" in inputs[0].type:
            self.dtype = np.float16
        else:
            self.dtype = np.float32

        logger.info("ONNX model loaded: %s providers=%s", path, self.providers)

    @torch.inference_mode()
    def forward(self, tensor):
        feed = tensor.detach().to("cpu").contiguous().numpy().astype(self.dtype, copy=False)
        outputs = self.session.run([self.output_name], {self.input_name: feed})
        output = outputs[0]
        if output.dtype == np.float16:
            output = output.astype(np.float32)
        return torch.from_numpy(output).to(self.device)
