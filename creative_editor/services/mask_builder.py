"""
Mask construction for text replacement.

The mask is a copy of the target image with every matched text box painted
in a sentinel colour, sent alongside the original so the edit model knows
exactly where to write.
"""

import io
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from PIL import Image, ImageColor, ImageDraw

from creative_editor.errors import NoMatchingRegions
from creative_editor.models.session import EditItem, TextRegion, UploadedImage
from creative_editor.utils.image_utils import open_image

logger = logging.getLogger(__name__)

DEFAULT_FILL_COLOR = "#FF00FF"

INSTRUCTION_PREAMBLE = (
    "I have provided an original image and a version with {color} areas (a mask). "
    "Your ONLY task is to precisely fill in these {color} areas with new text. The result "
    "must be sharp, high-fidelity, and indistinguishable from the original's style, font, "
    "color, and perspective. Here are the specific replacements:"
)
INSTRUCTION_POSTSCRIPT = "Do not alter any part of the image outside the {color} areas."

# Names for common sentinel colours; anything else is described by its hex code
COLOR_NAMES = {
    "#FF00FF": "bright magenta",
    "#00FF00": "bright green",
    "#00FFFF": "bright cyan",
    "#FFFF00": "bright yellow",
    "#FF0000": "bright red",
    "#0000FF": "bright blue",
}


@dataclass
class MaskResult:
    mask: UploadedImage
    instruction: str
    # (edit, region on the target image) pairs that were painted
    matched: List[Tuple[EditItem, TextRegion]] = field(default_factory=list)


def find_region(edit: EditItem, regions: Sequence[TextRegion]) -> Optional[TextRegion]:
    """First region whose trimmed text equals the edit's trimmed original."""
    wanted = edit.original.strip()
    for region in regions:
        if region.text.strip() == wanted:
            return region
    return None


def replacement_line(edit: EditItem) -> str:
    return f'- In the area where "{edit.original}" was, write "{edit.modified}"'


def describe_color(fill_color: str) -> str:
    """Wording used for the mask colour in the instruction."""
    if not fill_color.startswith("#"):
        return fill_color
    return COLOR_NAMES.get(fill_color.upper(), f"solid {fill_color.upper()}")


def compose_instruction(lines: Sequence[str], fill_color: str = DEFAULT_FILL_COLOR) -> str:
    color = describe_color(fill_color)
    return "\n".join([
        INSTRUCTION_PREAMBLE.format(color=color),
        *lines,
        INSTRUCTION_POSTSCRIPT.format(color=color),
    ])


def build_mask(
    image: UploadedImage,
    edits: Sequence[EditItem],
    regions: Sequence[TextRegion],
    fill_color: str = DEFAULT_FILL_COLOR,
) -> MaskResult:
    """
    Paint matched text boxes and build the edit instruction.

    Args:
        image: Target image
        edits: Active edits defined on the master
        regions: Text regions extracted from this target image
        fill_color: Sentinel colour for the masked boxes

    Returns:
        MaskResult with a PNG mask of the same size as ``image``

    Raises:
        NoMatchingRegions: none of the edits matched text on this image
    """
    matched = []
    for edit in edits:
        region = find_region(edit, regions)
        if region is not None:
            matched.append((edit, region))

    if not matched:
        raise NoMatchingRegions()

    canvas = open_image(image.data)
    if canvas.mode not in ("RGB", "RGBA"):
        canvas = canvas.convert("RGB")
    else:
        canvas = canvas.copy()

    color = ImageColor.getcolor(fill_color, canvas.mode)
    draw = ImageDraw.Draw(canvas)
    width, height = canvas.size
    for _, region in matched:
        draw.rectangle(region.bounding_box.to_pixels(width, height), fill=color)

    buf = io.BytesIO()
    canvas.save(buf, format="PNG")
    mask = UploadedImage(
        filename=f"mask_{image.filename}",
        mime_type="image/png",
        data=buf.getvalue(),
        width=width,
        height=height,
    )

    instruction = compose_instruction(
        [replacement_line(edit) for edit, _ in matched], fill_color
    )
    logger.debug(f"Mask for {image.filename}: {len(matched)}/{len(edits)} edits matched")
    return MaskResult(mask=mask, instruction=instruction, matched=matched)
