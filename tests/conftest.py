"""
Pytest configuration and shared fixtures for torchframe tests.

This module provides reusable fixtures for testing, including:
- Real TorchScript model files (identity and constant-scale graphs)
- Malformed / missing model paths
- Counting loaders for cache-hit assertions
- CPU device enforcement
"""

import os

import numpy as np
import pytest
import torch

from torchframe.export import IdentityRGB, ScaleRGB, export_onnx, export_torchscript
from torchframe.models import load_model

# Force CPU-only testing by disabling CUDA
os.environ["CUDA_VISIBLE_DEVICES"] = ""


@pytest.fixture
def cpu():
    return torch.device("cpu")


@pytest.fixture(scope="session")
def model_dir(tmp_path_factory):
    return tmp_path_factory.mktemp("models")


@pytest.fixture(scope="session")
def identity_model_path(model_dir):
    """TorchScript graph that returns its input unchanged."""
    return str(export_torchscript(IdentityRGB(), model_dir / "identity.pt"))


@pytest.fixture(scope="session")
def half_model_path(model_dir):
    """TorchScript graph that halves every sample."""
    return str(export_torchscript(ScaleRGB(0.5), model_dir / "half.pt"))


@pytest.fixture(scope="session")
def onnx_identity_model_path(model_dir):
    """ONNX pass-through graph with dynamic height/width."""
    return str(export_onnx(IdentityRGB(), model_dir / "identity.onnx", height=8, width=8))


@pytest.fixture(scope="session")
def malformed_model_path(model_dir):
    path = model_dir / "malformed.pt"
    path.write_bytes(b"this is not a serialized graph")
    return str(path)


@pytest.fixture
def missing_model_path(tmp_path):
    return str(tmp_path / "does_not_exist.pt")


@pytest.fixture
def counting_loader():
    """Wraps the real loader and records every deserialization."""
    calls = []

    def loader(path, device):
        calls.append(path)
        return load_model(path, device)

    loader.calls = calls
    return loader


def make_pixels(height, width, value=None, seed=0):
    """(H,W,4) uint8 BGRA buffer, constant when value is given."""
    if value is not None:
        return np.full((height, width, 4), value, dtype=np.uint8)
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)


@pytest.fixture
def pixels():
    return make_pixels
