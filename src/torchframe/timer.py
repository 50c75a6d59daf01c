import time


class FPSTimer:
    def __init__(self, clock=time.perf_counter):
        self._clock = clock
        self.last = clock()
        self.frames = 0
        self.fps = 0.0

    def update(self):
        self.frames += 1
        now = self._clock()
        if now - self.last >= 1.0:
            self.fps = self.frames / (now - self.last)
            self.frames = 0
            self.last = now
        return self.fps
