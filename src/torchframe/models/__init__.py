import os

from torchframe.models.base_model import BaseModel
from torchframe.models.onnx_model import OnnxModel
from torchframe.models.torchscript_model import TorchScriptModel

ONNX_EXTENSIONS = {".onnx"}


def load_model(path, device):
    """Deserialize a model file, picking the backend from its extension."""
    ext = os.path.splitext(path)[1].lower()
    if ext in ONNX_EXTENSIONS:
        return OnnxModel(path, device)
    return TorchScriptModel(path, device)


__all__ = ["BaseModel", "OnnxModel", "TorchScriptModel", "load_model"]
