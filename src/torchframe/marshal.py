import numpy as np
import torch

CHANNELS = 4
MODEL_CHANNELS = 3


class TensorMarshaler:
    """Moves pixels between host buffers and model tensors.

    Input side: a (H,W,4) fixed-point buffer is copied into a persistent
    (1,H,W,4) float tensor, alpha is narrowed away and the view is permuted
    to channel-first (1,3,H,W). Values stay in the raw 0-255 range.

    Output side: a (1,3,H,W) tensor already divided by 255 is written into a
    (H,W,4) float buffer, then alpha is forced to 1.0.
    """

    def __init__(self, device):
        self.device = device
        self._buf_hw = None
        self._input = None          # persistent tensor (1,H,W,4)
        self.realloc_count = 0

    @property
    def buffer_shape(self):
        if self._input is None:
            return None
        return tuple(self._input.shape)

    # -----------------------------------------------------------------------
    # Buffer management: allocate once, reuse every frame
    # -----------------------------------------------------------------------
    def _ensure_buffers(self, h, w):
        """Reallocate the input tensor when resolution changes. No-op otherwise."""
        if self._buf_hw == (h, w):
            return
        self._buf_hw = (h, w)
        self._input = torch.ones(
            (1, h, w, CHANNELS), dtype=torch.float32, device=self.device,
        )
        self.realloc_count += 1

    def release(self):
        self._buf_hw = None
        self._input = None

    # -----------------------------------------------------------------------
    # Host buffer -> model input
    # -----------------------------------------------------------------------
    def to_model_input(self, src, width, height):
        if isinstance(src, (bytes, bytearray, memoryview)):
            src = np.frombuffer(src, dtype=np.uint8)
        src = np.asarray(src)
        if src.size != height * width * CHANNELS:
            raise ValueError(
                f"pixel buffer has {src.size} samples, expected "
                f"{height}x{width}x{CHANNELS}"
            )

        self._ensure_buffers(height, width)

        # from_numpy is zero-copy; copy_ does the dtype cast and any H2D move
        raw = torch.from_numpy(np.ascontiguousarray(src).reshape(1, height, width, CHANNELS))
        self._input.copy_(raw, non_blocking=self.device.type == "cuda")

        # (1,H,W,4) -> drop alpha -> (1,3,H,W)
        return self._input.narrow(3, 0, MODEL_CHANNELS).permute(0, 3, 1, 2)

    # -----------------------------------------------------------------------
    # Model output -> host buffer
    # -----------------------------------------------------------------------
    @staticmethod
    def from_model_output(tensor, width, height, dst=None):
        if dst is None:
            dst = np.empty((height, width, CHANNELS), dtype=np.float32)

        # Single linear scan over the tensor's storage, channel-major
        t = tensor.detach().contiguous().numpy()
        for chan in range(t.shape[1]):
            dst[:, :, chan] = t[0, chan]

        dst[:, :, 3] = 1.0
        return dst
