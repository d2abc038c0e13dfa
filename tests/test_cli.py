from datetime import datetime
from pathlib import Path

from PIL import Image
import pytest

from snaperase import cli, pipeline
from snaperase.inference import ConstantInferenceAdapter
from snaperase.pipeline import BackgroundRemover


@pytest.fixture(autouse=True)
def constant_remover(monkeypatch, small_profile):
    remover = BackgroundRemover(ConstantInferenceAdapter(1.0, 16), small_profile)
    monkeypatch.setattr(pipeline, "get_background_remover", lambda: remover)
    return remover


def test_writes_rgba_png(tmp_path):
    source = tmp_path / "photo.jpg"
    Image.new("RGB", (30, 20), (200, 10, 10)).save(source)
    output = tmp_path / "out" / "cutout.png"

    assert cli.main(["--input", str(source), "--output", str(output)]) == 0

    result = Image.open(output)
    assert result.mode == "RGBA"
    assert result.size == (30, 20)
    assert result.getpixel((5, 5))[3] == 255


def test_default_output_next_to_input(tmp_path):
    source = tmp_path / "photo.png"
    Image.new("RGB", (8, 8)).save(source)

    assert cli.main(["--input", str(source)]) == 0

    outputs = list(tmp_path.glob("background_removed_*.png"))
    assert len(outputs) == 1


def test_default_output_path_format():
    path = cli.default_output_path(Path("/pics/a.jpg"), now=datetime(2024, 5, 6, 7, 8, 9))
    assert path == Path("/pics/background_removed_20240506_070809.png")


def test_unsupported_suffix(tmp_path):
    source = tmp_path / "anim.gif"
    Image.new("RGB", (8, 8)).save(source)
    assert cli.main(["--input", str(source)]) == 2


def test_missing_input_fails(tmp_path):
    assert cli.main(["--input", str(tmp_path / "missing.png")]) == 1
