import threading
from pathlib import Path

import pytest
from PIL import Image

from imgcache.codec import PillowCodec


def _write_image(path: Path, size=(500, 500), color=(200, 40, 40), fmt="JPEG", mode="RGB") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new(mode, size, color).save(path, format=fmt)
    return path


@pytest.fixture
def make_image():
    """Factory writing a solid-colour image and returning its path."""
    return _write_image


@pytest.fixture
def source_image(tmp_path):
    """500x500 JPEG at <tmp>/photos/cam1/snap.jpg."""
    return _write_image(tmp_path / "photos" / "cam1" / "snap.jpg")


@pytest.fixture
def cache_dir(tmp_path):
    return tmp_path / "cache" / "images"


class CountingCodec(PillowCodec):
    """PillowCodec that counts calls and can hold decode until released."""

    def __init__(self, gated: bool = False) -> None:
        super().__init__()
        self.decode_calls = 0
        self.resize_calls = 0
        self.encode_calls = 0
        self.gate = threading.Event()
        if not gated:
            self.gate.set()
        self._lock = threading.Lock()

    def decode(self, data):
        with self._lock:
            self.decode_calls += 1
        if not self.gate.wait(timeout=10):
            raise TimeoutError("codec gate never released")
        return super().decode(data)

    def resize(self, image, max_width, max_height):
        self.resize_calls += 1
        return super().resize(image, max_width, max_height)

    def encode(self, image, fmt, quality):
        self.encode_calls += 1
        return super().encode(image, fmt, quality)


@pytest.fixture
def counting_codec():
    return CountingCodec()


@pytest.fixture
def gated_codec():
    return CountingCodec(gated=True)
