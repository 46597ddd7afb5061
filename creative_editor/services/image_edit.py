"""
Image editing through a Gemini image model.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

from google.genai import types

from creative_editor.errors import GenerationBlocked, NoImageProduced
from creative_editor.models.session import UploadedImage
from creative_editor.services.gemini_client import generate_content, image_part
from creative_editor.utils.image_utils import to_data_url

logger = logging.getLogger(__name__)

# Finish reasons that mean "nothing unusual happened"
NORMAL_FINISH_REASONS = {"STOP", "FINISH_REASON_UNSPECIFIED"}


@dataclass
class EditedImage:
    """Image returned by the edit model."""
    data: bytes
    mime_type: str

    @property
    def data_url(self) -> str:
        return to_data_url(self.data, self.mime_type)


def _reason_name(reason: Any) -> Optional[str]:
    if reason is None:
        return None
    name = getattr(reason, "name", None) or str(reason)
    return name or None


def extract_edited_image(response: Any) -> EditedImage:
    """
    Pull the first inline image out of a generate_content response.

    Raises:
        GenerationBlocked: no image and a non-normal finish/block reason
        NoImageProduced: no image otherwise
    """
    candidates = getattr(response, "candidates", None) or []
    candidate = candidates[0] if candidates else None

    content = getattr(candidate, "content", None)
    for part in getattr(content, "parts", None) or []:
        inline = getattr(part, "inline_data", None)
        if inline is not None and inline.data:
            return EditedImage(data=inline.data, mime_type=inline.mime_type or "image/png")

    reason = _reason_name(getattr(candidate, "finish_reason", None))
    if reason is None:
        feedback = getattr(response, "prompt_feedback", None)
        reason = _reason_name(getattr(feedback, "block_reason", None))

    if reason and reason not in NORMAL_FINISH_REASONS:
        raise GenerationBlocked(reason)
    raise NoImageProduced()


class ImageEditService:
    """Single-shot image edits. No retries."""

    def __init__(self, client: Optional[Any], model: str, timeout: float) -> None:
        self._client = client
        self.model = model
        self.timeout = timeout

    async def edit_image(
        self,
        image: UploadedImage,
        instruction: str,
        mask: Optional[UploadedImage] = None,
    ) -> EditedImage:
        """
        Edit ``image`` according to ``instruction``.

        Args:
            image: Original image
            instruction: Natural-language edit instruction
            mask: Optional copy of the image with the areas to edit marked

        Returns:
            The edited image

        Raises:
            GenerationBlocked, NoImageProduced, TransportFailure
        """
        parts = [image_part(image)]
        if mask is not None:
            parts.append(image_part(mask))
        parts.append(types.Part(text=instruction))

        config = types.GenerateContentConfig(response_modalities=[types.Modality.IMAGE])
        response = await generate_content(self._client, self.model, parts, config, self.timeout)

        edited = extract_edited_image(response)
        logger.info(f"Edited {image.filename}: {len(edited.data)} bytes {edited.mime_type}")
        return edited
