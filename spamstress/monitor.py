"""
Local resource sampling while load is being generated.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import List

import psutil

logger = logging.getLogger(__name__)


@dataclass
class ResourceSample:
    """System resource metrics"""
    timestamp: float
    cpu_percent: float
    memory_percent: float
    memory_used_mb: float
    threads_count: int


class ResourceMonitor:
    """Samples CPU, memory and thread count on a background thread"""

    def __init__(self, interval: float = 0.5):
        self.interval = interval
        self.samples: List[ResourceSample] = []
        self._stop_event = threading.Event()
        self._thread = None
        self._lock = threading.Lock()

    def __enter__(self) -> "ResourceMonitor":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()

    def start(self):
        self._stop_event.clear()
        # Prime the counter; the first cpu_percent(None) call always returns 0.0
        psutil.cpu_percent(interval=None)
        self._thread = threading.Thread(target=self._run, name="resource-monitor", daemon=True)
        self._thread.start()

    def stop(self):
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        # Always capture at least one sample, even for very short runs
        self._sample()

    def _run(self):
        while not self._stop_event.wait(self.interval):
            self._sample()

    def _sample(self):
        try:
            memory = psutil.virtual_memory()
            sample = ResourceSample(
                timestamp=time.time(),
                cpu_percent=psutil.cpu_percent(interval=None),
                memory_percent=memory.percent,
                memory_used_mb=memory.used / 1024 / 1024,
                threads_count=threading.active_count(),
            )
        except psutil.Error as e:
            logger.warning(f"Error sampling system resources: {e}")
            return
        with self._lock:
            self.samples.append(sample)

    @property
    def peak_cpu_percent(self) -> float:
        with self._lock:
            return max((s.cpu_percent for s in self.samples), default=0.0)

    @property
    def peak_memory_mb(self) -> float:
        with self._lock:
            return max((s.memory_used_mb for s in self.samples), default=0.0)
