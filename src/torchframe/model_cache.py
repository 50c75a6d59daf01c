import gc
import logging

import torch

from torchframe.errors import BlankModelPath, ModelLoadFailure
from torchframe.models import load_model

logger = logging.getLogger(__name__)


class ModelCache:
    """Holds exactly one loaded model, keyed by the path it came from.

    ensure_loaded() is a no-op while the requested path matches the loaded
    one. A failed load leaves the previous model in place; the caller still
    has to abort the frame that asked for the new path.
    """

    def __init__(self, device, loader=load_model):
        self.device = device
        self._loader = loader
        self._model = None
        self._loaded_path = ""
        self.load_count = 0

    @property
    def model(self):
        return self._model

    @property
    def loaded_path(self):
        return self._loaded_path

    @property
    def is_loaded(self):
        return self._model is not None

    def ensure_loaded(self, path):
        if not path:
            raise BlankModelPath()

        if path == self._loaded_path:
            return self._model

        self.load_count += 1
        logger.info("Loading model file: %s", path)
        try:
            model = self._loader(path, self.device)
        except Exception as exc:
            logger.warning("Model load failed for %s: %s", path, exc)
            raise ModelLoadFailure(str(exc).strip()) from exc

        self._model = model
        self._loaded_path = path
        self._release_temporaries()
        return model

    def release(self):
        self._model = None
        self._loaded_path = ""
        self._release_temporaries()

    def _release_temporaries(self):
        gc.collect()
        if self.device.type == "cuda":
            torch.cuda.empty_cache()
