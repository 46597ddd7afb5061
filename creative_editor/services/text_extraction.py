"""
Text extraction: OCR with bounding boxes through Gemini structured output.
"""

import json
import logging
from typing import Any, List, Optional

from google.genai import types
from pydantic import TypeAdapter, ValidationError

from creative_editor.errors import MalformedResponse
from creative_editor.models.session import TextRegion, UploadedImage
from creative_editor.services.gemini_client import generate_content, image_part

logger = logging.getLogger(__name__)


OCR_PROMPT = (
    "Perform detailed OCR on this image. For each distinct line or block of text, "
    "provide its content and its bounding box coordinates. The coordinates should be "
    "fractions of the image's total width and height between 0 and 1, with the origin "
    "(0,0) at the top-left corner. Return the result as a valid JSON array of objects, "
    'where each object has a "text" key and a "boundingBox" key. The boundingBox object '
    'should have "x1", "y1", "x2", "y2" keys. Example: '
    '[{"text": "Hello World", "boundingBox": {"x1": 0.1, "y1": 0.15, "x2": 0.4, "y2": 0.2}}]'
)

OCR_RESPONSE_SCHEMA = types.Schema(
    type=types.Type.ARRAY,
    items=types.Schema(
        type=types.Type.OBJECT,
        properties={
            "text": types.Schema(type=types.Type.STRING),
            "boundingBox": types.Schema(
                type=types.Type.OBJECT,
                properties={
                    "x1": types.Schema(type=types.Type.NUMBER),
                    "y1": types.Schema(type=types.Type.NUMBER),
                    "x2": types.Schema(type=types.Type.NUMBER),
                    "y2": types.Schema(type=types.Type.NUMBER),
                },
                required=["x1", "y1", "x2", "y2"],
            ),
        },
        required=["text", "boundingBox"],
    ),
)

_regions_adapter = TypeAdapter(List[TextRegion])


def parse_text_regions(raw: str) -> List[TextRegion]:
    """
    Parse the model's JSON text into text regions.

    The whole response is rejected if any item is invalid.

    Raises:
        MalformedResponse: on non-JSON or schema mismatch
    """
    try:
        data = json.loads((raw or "").strip())
        return _regions_adapter.validate_python(data)
    except (json.JSONDecodeError, ValidationError) as e:
        logger.error(f"Failed to parse OCR response: {e}; raw response: {raw!r}")
        raise MalformedResponse() from e


class TextExtractionService:
    """Runs OCR on one image per call. No retries."""

    def __init__(self, client: Optional[Any], model: str, timeout: float) -> None:
        self._client = client
        self.model = model
        self.timeout = timeout

    async def extract_text(self, image: UploadedImage) -> List[TextRegion]:
        """
        Detect text lines/blocks and their boxes.

        Args:
            image: Image to analyse

        Returns:
            Text regions in no particular order

        Raises:
            MalformedResponse: response did not match the schema
            TransportFailure: the call itself failed
        """
        config = types.GenerateContentConfig(
            response_mime_type="application/json",
            response_schema=OCR_RESPONSE_SCHEMA,
        )
        response = await generate_content(
            self._client,
            self.model,
            [types.Part(text=OCR_PROMPT), image_part(image)],
            config,
            self.timeout,
        )
        regions = parse_text_regions(response.text)
        logger.info(f"Extracted {len(regions)} text regions from {image.filename}")
        return regions
