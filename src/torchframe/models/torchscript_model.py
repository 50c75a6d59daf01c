import logging

import torch

from torchframe.models.base_model import BaseModel

logger = logging.getLogger(__name__)


class TorchScriptModel(BaseModel):
    """TorchScript graph loaded with torch.jit.load.

    The graph is expected to take a single channel-first (1,3,H,W) float
    tensor of raw 0-255 values and return an image tensor of the same layout.
    Scaling on input is the graph's job.
    """

    def __init__(self, path, device):
        super().__init__(path, device)
        self.module = torch.jit.load(path, map_location=device)
        self.module.eval()
        logger.info("TorchScript model loaded: %s (%s)", path, device)

    @torch.inference_mode()
    def forward(self, tensor):
        output = self.module(tensor)
        if isinstance(output, (tuple, list)):
            output = output[0]
        return output
