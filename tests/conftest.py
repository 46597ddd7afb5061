from __future__ import annotations

import asyncio
import io
from types import SimpleNamespace
from typing import Dict, Iterable, List, Optional

import pytest
from PIL import Image

from creative_editor.models.session import BoundingBox, TextRegion, UploadedImage
from creative_editor.services.image_edit import EditedImage


def make_image_bytes(width: int = 200, height: int = 100, color="white", fmt: str = "PNG") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format=fmt)
    return buf.getvalue()


def make_uploaded(name: str = "a.png", width: int = 200, height: int = 100, color="white") -> UploadedImage:
    return UploadedImage(
        filename=name,
        mime_type="image/png",
        data=make_image_bytes(width, height, color),
        width=width,
        height=height,
    )


def region(text: str, x1: float, y1: float, x2: float, y2: float) -> TextRegion:
    return TextRegion(text=text, bounding_box=BoundingBox(x1=x1, y1=y1, x2=x2, y2=y2))


class FakeModels:
    """Stands in for ``client.aio.models``; replays queued outcomes."""

    def __init__(self, outcomes: Iterable) -> None:
        self.outcomes = list(outcomes)
        self.calls: List[dict] = []

    async def generate_content(self, model, contents, config):
        self.calls.append({"model": model, "contents": contents, "config": config})
        outcome = self.outcomes.pop(0)
        if callable(outcome):
            outcome = await outcome()
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeGenaiClient:
    def __init__(self, *outcomes) -> None:
        self.aio = SimpleNamespace(models=FakeModels(outcomes))

    @property
    def calls(self) -> List[dict]:
        return self.aio.models.calls


class StubExtractor:
    """Returns canned regions per filename."""

    def __init__(
        self,
        regions_by_name: Dict[str, List[TextRegion]],
        errors: Optional[Dict[str, Exception]] = None,
        delay: float = 0.0,
    ) -> None:
        self.regions_by_name = regions_by_name
        self.errors = errors or {}
        self.delay = delay
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def extract_text(self, image: UploadedImage) -> List[TextRegion]:
        self.calls.append(image.filename)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if image.filename in self.errors:
                raise self.errors[image.filename]
            return list(self.regions_by_name.get(image.filename, []))
        finally:
            self.in_flight -= 1


class StubEditor:
    """Returns a fake edited image, or raises for configured filenames."""

    def __init__(self, errors: Optional[Dict[str, Exception]] = None) -> None:
        self.errors = errors or {}
        self.calls: List[dict] = []

    async def edit_image(self, image: UploadedImage, instruction: str, mask=None) -> EditedImage:
        self.calls.append({"image": image, "instruction": instruction, "mask": mask})
        if image.filename in self.errors:
            raise self.errors[image.filename]
        return EditedImage(data=b"edited-" + image.filename.encode(), mime_type="image/png")


@pytest.fixture
def sale_regions() -> Dict[str, List[TextRegion]]:
    return {
        "a.png": [region("SALE", 0.0, 0.0, 0.2, 0.1), region("Shop now", 0.1, 0.8, 0.5, 0.9)],
        "b.png": [region(" SALE ", 0.5, 0.5, 0.9, 0.7)],
        "c.png": [region("Summer", 0.1, 0.1, 0.3, 0.2)],
        "d.png": [region("SALE", 0.3, 0.3, 0.6, 0.4)],
    }
