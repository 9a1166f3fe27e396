"""PySide6 bridge for panelslicer.

- qimage_to_buffer: QImage -> RGBA PixelBuffer for the detectors
- BatchSignals: re-emits orchestrator status transitions as Qt signals
"""

from __future__ import annotations

import logging

import numpy as np
from PySide6.QtCore import QObject, Signal
from PySide6.QtGui import QImage

from .batch import BatchOrchestrator, DetectionJob, JobStatus
from .image_utils import PixelBuffer

log = logging.getLogger("Batch")


def qimage_to_buffer(img: QImage) -> PixelBuffer:
    """Return an HxWx4 uint8 RGBA array from a QImage.

    Works with PySide6 where QImage.constBits() returns a memoryview.

    Raises:
        ValueError: the image is null
    """
    if img.isNull():
        raise ValueError("Null QImage")
    if img.format() != QImage.Format.Format_RGBA8888:
        img = img.convertToFormat(QImage.Format.Format_RGBA8888)

    w, h = img.width(), img.height()
    bpl = img.bytesPerLine()
    arr = np.frombuffer(bytes(img.constBits()), dtype=np.uint8).reshape((h, bpl))
    arr = arr[:, : w * 4]  # drop stride padding
    return np.ascontiguousarray(arr.reshape((h, w, 4)))


class BatchSignals(QObject):
    """Qt signals mirroring a BatchOrchestrator's job transitions."""

    job_started = Signal(str)        # item_id
    job_finished = Signal(object)    # DetectionJob
    job_failed = Signal(str, str)    # item_id, message

    def attach(self, orchestrator: BatchOrchestrator) -> None:
        orchestrator.add_listener(self._on_transition)

    def detach(self, orchestrator: BatchOrchestrator) -> None:
        orchestrator.remove_listener(self._on_transition)

    def _on_transition(self, job: DetectionJob) -> None:
        if job.status == JobStatus.PROCESSING:
            self.job_started.emit(job.item_id)
        elif job.status == JobStatus.DONE:
            self.job_finished.emit(job)
        elif job.status == JobStatus.ERROR:
            log.debug(f"Signalling failure of {job.item_id}")
            self.job_failed.emit(job.item_id, job.error or "")
