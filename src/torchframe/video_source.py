import logging
import queue
import threading

import cv2
import numpy as np

from torchframe.config import ImageDownload

logger = logging.getLogger(__name__)


class VideoSource:
    def __init__(self, path, prefetch=0):
        self.cap = cv2.VideoCapture(path)
        if not self.cap.isOpened():
            raise RuntimeError(f"Cannot open video: {path}")
        # Reduce decoder queueing latency when backend supports it.
        self.cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        self.prefetch = max(0, int(prefetch))
        self._queue = None
        self._thread = None
        self._stopped = False
        self._sentinel = object()

        if self.prefetch > 0:
            self._queue = queue.Queue(maxsize=self.prefetch)
            self._thread = threading.Thread(target=self._reader_loop, daemon=True)
            self._thread.start()

    def _reader_loop(self):
        while not self._stopped:
            ret, frame = self.cap.read()
            if not ret:
                self._queue.put(self._sentinel)
                break
            self._queue.put(frame)

    def read(self):
        if self._queue is None:
            return self.cap.read()

        item = self._queue.get()
        if item is self._sentinel:
            return False, None
        return True, item

    def release(self):
        self._stopped = True
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=0.5)
        self.cap.release()


class VideoFrameInput:
    """Adapts a decoded BGR frame to the pipeline's frame-source protocol.

    The pixels are handed over as BGRA uint8, the host's fixed download
    format. Delayed download defers the colour conversion until the
    pipeline actually asks for the buffer.
    """

    def __init__(self, frame_bgr):
        self.frame_bgr = frame_bgr
        self.height, self.width = frame_bgr.shape[:2]
        self._bgra = None

    def download(self, mode=ImageDownload.INSTANT):
        if self._bgra is None:
            self._bgra = cv2.cvtColor(self.frame_bgr, cv2.COLOR_BGR2BGRA)
        return self._bgra

    @classmethod
    def prepared(cls, frame_bgr, mode=ImageDownload.INSTANT):
        frame_input = cls(frame_bgr)
        if mode is ImageDownload.INSTANT:
            frame_input.download(mode)
        return frame_input


def to_display(rgba):
    """(H,W,4) float [0,1] output buffer -> BGR uint8 frame for cv2.imshow."""
    out = np.clip(rgba[:, :, :3], 0.0, 1.0)
    out = (out * 255.0).astype(np.uint8)
    # Channel order follows the input download order (BGRA), so no swap.
    return np.ascontiguousarray(out)
