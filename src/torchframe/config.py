import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import Mapping

import torch

DEFAULT_DEVICE = os.getenv("TORCHFRAME_DEVICE", "auto").lower()
DEFAULT_MODEL = os.getenv("TORCHFRAME_MODEL", "")

# Host parameter names
MODEL_FILE_PARAM = "Modelfile"
IMAGE_DOWNLOAD_PARAM = "Imagedownload"


class ImageDownload(Enum):
    """When the host materialises the input buffer. Does not change the algorithm."""

    INSTANT = "Instant"
    DELAYED = "Delayed"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        # Anything that is not "Delayed" downloads instantly.
        if value is not None and str(value).strip().lower() == "delayed":
            return cls.DELAYED
        return cls.INSTANT


@dataclass(frozen=True)
class PipelineConfig:
    model_file: str = ""
    image_download: ImageDownload = ImageDownload.INSTANT

    def with_changes(self, **changes):
        if "image_download" in changes:
            changes["image_download"] = ImageDownload.parse(changes["image_download"])
        return replace(self, **changes)

    @classmethod
    def from_params(cls, params: Mapping[str, str]):
        return cls(
            model_file=params.get(MODEL_FILE_PARAM) or "",
            image_download=ImageDownload.parse(params.get(IMAGE_DOWNLOAD_PARAM)),
        )


def resolve_device(device="auto"):
    """
    Resolve a device name once, at pipeline construction.
    Switching device afterwards means building a new pipeline.
    """
    if isinstance(device, torch.device):
        return device
    mode = (device or "auto").lower()
    if mode == "auto":
        if torch.cuda.is_available():
            return torch.device("cuda:0")
        return torch.device("cpu")
    if mode == "cuda":
        if not torch.cuda.is_available():
            raise RuntimeError("CUDA/ROCm device not available for PyTorch.")
        return torch.device("cuda:0")
    if mode == "cpu":
        return torch.device("cpu")
    raise ValueError("device must be one of: auto, cuda, cpu")
