import io
import random
import struct
import itertools
from datetime import datetime, timedelta

import pytest
from PIL import Image

from goalquest import GoalStore, MemoryStorage, PhotoPipeline


def make_image_bytes(size=(1600, 1200), mode="RGB", fmt="PNG", color=(200, 30, 30)):
    """Render a solid-colour test image and return its encoded bytes."""
    if mode == "RGBA" and len(color) == 3:
        color = color + (128,)
    img = Image.new(mode, size, color)
    out = io.BytesIO()
    img.save(out, format=fmt)
    return out.getvalue()


class FakeClock:
    """Deterministic clock; advance with `tick`."""

    def __init__(self, start=datetime(2024, 1, 1, 9, 0, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def tick(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def png_bytes():
    return make_image_bytes()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(storage, clock):
    counter = itertools.count(1)
    s = GoalStore(
        storage,
        photo_pipeline=PhotoPipeline(max_dimension=200, quality=60),
        id_factory=lambda: f"id-{next(counter)}",
        clock=clock
    )
    s.load()
    return s


def make_broken_png():
    """
    PNG whose pixel data spans several IDAT chunks, with the type of the
    second chunk mangled. Pillow opens it fine and fails mid-decode.
    """
    img = Image.frombytes("RGB", (300, 300), random.Random(7).randbytes(270000))
    out = io.BytesIO()
    img.save(out, format="PNG")
    data = bytearray(out.getvalue())

    offset = 8
    idat_seen = 0
    while offset < len(data):
        length = struct.unpack(">I", data[offset:offset + 4])[0]
        if data[offset + 4:offset + 8] == b"IDAT":
            idat_seen += 1
            if idat_seen == 2:
                data[offset + 4:offset + 8] = b"ID\xd6T"
                return bytes(data)
        offset += 12 + length
    raise AssertionError("test image was written as a single IDAT chunk")
