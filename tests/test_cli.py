import json

import cv2
import pytest

from panelslicer import __version__
from panelslicer.cli import main

from conftest import blank, fill


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("PANELSLICER_PRESET", "PANELSLICER_THRESHOLD", "PANELSLICER_CONCURRENCY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def page_png(tmp_path):
    rgba = fill(blank(200, 200), 50, 50, 150, 150)
    path = tmp_path / "page.png"
    cv2.imwrite(str(path), cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGRA))
    return path


def test_version(capsys):
    with pytest.raises(SystemExit) as info:
        main(["--version"])
    assert info.value.code == 0
    assert __version__ in capsys.readouterr().out


class TestGrid:
    def test_prints_slices(self, capsys):
        assert main(["grid", "--rows", "2", "--cols", "2"]) == 0
        slices = json.loads(capsys.readouterr().out)
        assert [s["id"] for s in slices] == ["grid-0-0", "grid-0-1", "grid-1-0", "grid-1-1"]

    def test_invalid_size(self):
        assert main(["grid", "--rows", "0", "--cols", "2"]) == 1


class TestScan:
    def test_writes_results(self, page_png, tmp_path):
        out = tmp_path / "slices.json"
        assert main(["scan", str(page_png), "--output", str(out)]) == 0

        result = json.loads(out.read_text(encoding="utf-8"))
        entry = result[str(page_png)]
        assert entry["status"] == "done"
        assert entry["error"] is None
        (region,) = entry["regions"]
        assert region["x"] == pytest.approx(0.25)

    def test_missing_image_reported(self, page_png, tmp_path, capsys):
        missing = tmp_path / "missing.png"
        assert main(["scan", str(page_png), str(missing), "--concurrency", "2"]) == 1

        result = json.loads(capsys.readouterr().out)
        assert result[str(page_png)]["status"] == "done"
        assert result[str(missing)]["status"] == "error"
        assert "missing.png" in result[str(missing)]["error"]

    def test_preset_and_config_file(self, page_png, tmp_path, capsys):
        config = tmp_path / "slicer.yaml"
        config.write_text("scan:\n  min_dimension_px: 150\n", encoding="utf-8")
        assert main(["scan", str(page_png), "--preset", "comics", "--config", str(config)]) == 0
        # The 100px block is below the configured minimum
        assert json.loads(capsys.readouterr().out)[str(page_png)]["regions"] == []

    def test_malformed_config_section(self, page_png, tmp_path):
        config = tmp_path / "slicer.yaml"
        config.write_text("scan: 5\n", encoding="utf-8")
        assert main(["scan", str(page_png), "--config", str(config)]) == 1

    def test_unknown_preset(self, page_png):
        assert main(["scan", str(page_png), "--preset", "posters"]) == 1


class TestNormalize:
    def test_raw_text(self, tmp_path, capsys):
        path = tmp_path / "response.txt"
        path.write_text('Result:\n```json\n{"boxes": [[0, 0, 500, 1000]]}\n```', encoding="utf-8")
        assert main(["normalize", str(path), "--width", "800", "--height", "1200"]) == 0

        (region,) = json.loads(capsys.readouterr().out)
        assert region["height"] == pytest.approx(0.5)
        assert region["id"].startswith("ai-slice-")

    def test_chat_completion_body(self, tmp_path, capsys):
        body = {"choices": [{"message": {"content": '{"boxes": [[0.0, 0.0, 1.0, 0.5]]}'}}]}
        path = tmp_path / "response.json"
        path.write_text(json.dumps(body), encoding="utf-8")
        assert main(["normalize", str(path), "--width", "800", "--height", "1200"]) == 0

        (region,) = json.loads(capsys.readouterr().out)
        assert region["width"] == pytest.approx(0.5)

    def test_unparsable_exit_status(self, tmp_path):
        path = tmp_path / "response.txt"
        path.write_text("I see a cat.", encoding="utf-8")
        assert main(["normalize", str(path), "--width", "800", "--height", "1200"]) == 2

    def test_error_body(self, tmp_path):
        path = tmp_path / "response.json"
        path.write_text(json.dumps({"error": {"message": "rate limited"}}), encoding="utf-8")
        assert main(["normalize", str(path), "--width", "800", "--height", "1200"]) == 1
