import asyncio

import pytest

QtCore = pytest.importorskip("PySide6.QtCore")
QtGui = pytest.importorskip("PySide6.QtGui")

from panelslicer.batch import BatchOrchestrator, DetectionJob, JobStatus  # noqa: E402
from panelslicer.detector import Region  # noqa: E402
from panelslicer.qt_support import BatchSignals, qimage_to_buffer  # noqa: E402


@pytest.fixture(scope="module")
def qt_app():
    return QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])


class TestQImageToBuffer:
    def test_rgba_image(self):
        img = QtGui.QImage(3, 2, QtGui.QImage.Format.Format_RGBA8888)
        img.fill(QtGui.QColor(10, 20, 30, 40))
        buf = qimage_to_buffer(img)
        assert buf.shape == (2, 3, 4)
        assert buf[1, 2].tolist() == [10, 20, 30, 40]

    def test_padded_rows_converted(self):
        img = QtGui.QImage(3, 2, QtGui.QImage.Format.Format_RGB888)
        img.fill(QtGui.QColor(200, 100, 50))
        buf = qimage_to_buffer(img)
        assert buf.shape == (2, 3, 4)
        assert buf[0, 0].tolist() == [200, 100, 50, 255]

    def test_null_image(self):
        with pytest.raises(ValueError):
            qimage_to_buffer(QtGui.QImage())


def test_batch_signals(qt_app):
    async def detect(job):
        if job.item_id == "bad":
            raise RuntimeError("decode failed")
        return [Region("r", 0, 0, 1, 1)]

    started, finished, failed = [], [], []
    signals = BatchSignals()
    signals.job_started.connect(lambda item_id: started.append(item_id))
    signals.job_finished.connect(lambda job: finished.append(job.item_id))
    signals.job_failed.connect(lambda item_id, message: failed.append((item_id, message)))

    orchestrator = BatchOrchestrator()
    signals.attach(orchestrator)
    jobs = [DetectionJob("ok", status=JobStatus.QUEUED), DetectionJob("bad", status=JobStatus.QUEUED)]
    asyncio.run(orchestrator.run_to_completion(jobs, 2, detect))

    assert started == ["ok", "bad"]
    assert finished == ["ok"]
    assert failed == [("bad", "decode failed")]

    signals.detach(orchestrator)
    jobs[1].status = JobStatus.QUEUED
    asyncio.run(orchestrator.run_to_completion(jobs, 1, detect))
    assert failed == [("bad", "decode failed")]
