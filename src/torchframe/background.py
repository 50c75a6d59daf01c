import logging
import queue
import threading
from dataclasses import dataclass
from typing import Any, Optional

from torchframe.config import PipelineConfig
from torchframe.pipeline import FramePipeline, OutputBuffers
from torchframe.state import ExecuteResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameRequest:
    frame: Any
    config: PipelineConfig


@dataclass(frozen=True)
class FrameResult:
    result: ExecuteResult
    output: Optional[OutputBuffers]


class BackgroundPipeline:
    """Runs a FramePipeline on a worker thread.

    The caller submits immutable (frame, config) snapshots through a bounded
    queue and picks up the most recently completed frame with latest().
    The worker owns the pipeline, its model and its buffers; nothing is shared
    with the caller except the two queues.
    """

    def __init__(self, pipeline: FramePipeline, maxsize=2):
        self.pipeline = pipeline
        self._requests = queue.Queue(maxsize=max(1, int(maxsize)))
        self._results = queue.Queue()
        self._sentinel = object()
        self._latest = None
        self.dropped = 0
        self._thread = threading.Thread(target=self._worker_loop, daemon=True)
        self._thread.start()

    def submit(self, frame, config: PipelineConfig):
        request = FrameRequest(frame=frame, config=config)
        while True:
            try:
                self._requests.put_nowait(request)
                return
            except queue.Full:
                # Keep the newest work; drop the oldest pending request.
                try:
                    self._requests.get_nowait()
                    self.dropped += 1
                except queue.Empty:
                    pass

    def _worker_loop(self):
        while True:
            item = self._requests.get()
            if item is self._sentinel:
                break
            self.pipeline.configure(item.config)
            output = OutputBuffers.for_input(item.frame)
            try:
                result = self.pipeline.execute(output, item.frame)
            except Exception as exc:
                logger.exception("Background frame failed")
                self._results.put(exc)
                continue
            self._results.put(FrameResult(result=result, output=output))

    def _take(self, item):
        # Contract violations raised on the worker resurface on the caller.
        if isinstance(item, Exception):
            raise item
        self._latest = item

    def latest(self):
        """Most recently completed frame, or None if nothing finished yet."""
        while True:
            try:
                item = self._results.get_nowait()
            except queue.Empty:
                return self._latest
            self._take(item)

    def wait(self, timeout=None):
        """Block until the next frame completes."""
        try:
            item = self._results.get(timeout=timeout)
        except queue.Empty:
            return None
        self._take(item)
        return self._latest

    def close(self, timeout=5.0):
        # Sentinel must get through even when the queue is full.
        while True:
            try:
                self._requests.put_nowait(self._sentinel)
                break
            except queue.Full:
                try:
                    self._requests.get_nowait()
                except queue.Empty:
                    pass
        if self._thread.is_alive():
            self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            # Worker still inside a frame; it owns the model until it exits.
            logger.warning("Background worker did not stop within %.1fs, pipeline not released", timeout)
            return False
        self.pipeline.close()
        return True
