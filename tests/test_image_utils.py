from __future__ import annotations

import io

from PIL import Image

from conftest import make_image_bytes, region
from creative_editor.models.session import BoundingBox, EditItem, UploadedImage
from creative_editor.services.mask_builder import build_mask
from creative_editor.utils.image_utils import EXIF_ORIENTATION, normalize_upload


def _rotated_jpeg() -> bytes:
    # Stored 200x100: left half red, right half blue; tagged "rotate 90 CW to display"
    img = Image.new("RGB", (200, 100), (0, 0, 255))
    img.paste((255, 0, 0), (0, 0, 100, 100))
    exif = Image.Exif()
    exif[EXIF_ORIENTATION] = 6
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=95, exif=exif)
    return buf.getvalue()


def test_plain_png_is_kept_as_is():
    data = make_image_bytes(120, 80)
    assert normalize_upload(data) == (data, "image/png", (120, 80))


def test_gif_is_converted_to_jpeg():
    data, mime_type, size = normalize_upload(make_image_bytes(30, 20, fmt="GIF"))
    assert mime_type == "image/jpeg"
    assert data[:3] == b"\xff\xd8\xff"
    assert size == (30, 20)


def test_exif_orientation_is_applied_to_stored_pixels():
    data, mime_type, size = normalize_upload(_rotated_jpeg())

    upright = Image.open(io.BytesIO(data))
    assert mime_type == "image/jpeg"
    assert size == (100, 200)
    assert upright.size == (100, 200)
    assert upright.getexif().get(EXIF_ORIENTATION, 1) == 1

    top = upright.convert("RGB").getpixel((50, 40))
    bottom = upright.convert("RGB").getpixel((50, 160))
    assert top[0] > 200 and top[2] < 60
    assert bottom[2] > 200 and bottom[0] < 60


def test_mask_of_rotated_upload_lines_up_with_stored_image():
    data, mime_type, (width, height) = normalize_upload(_rotated_jpeg())
    image = UploadedImage("photo.jpg", mime_type, data, width, height)
    edit = EditItem(
        id=0, original="SALE", modified="NEW", bounding_box=BoundingBox(x1=0, y1=0, x2=1, y2=0.25)
    )

    result = build_mask(image, [edit], [region("SALE", 0, 0, 1, 0.25)])

    mask = Image.open(io.BytesIO(result.mask.data)).convert("RGB")
    assert mask.size == Image.open(io.BytesIO(image.data)).size == (100, 200)
    assert mask.getpixel((50, 20)) == (255, 0, 255)
    assert mask.getpixel((50, 120)) != (255, 0, 255)
