"""
Gemini client construction and the shared async call wrapper.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from creative_editor.config import get_settings
from creative_editor.errors import TransportFailure
from creative_editor.models.session import UploadedImage

logger = logging.getLogger(__name__)


def build_client(
    api_key: Optional[str] = None,
    project: Optional[str] = None,
    location: Optional[str] = None,
) -> genai.Client:
    """
    Create a genai client.

    Uses the API key when given, otherwise Vertex AI with project/location.

    Raises:
        TransportFailure: neither credential is configured
    """
    if api_key:
        return genai.Client(api_key=api_key)
    if not project:
        raise TransportFailure(
            "The AI service is not configured. Set GEMINI_API_KEY or GCP_PROJECT."
        )
    return genai.Client(vertexai=True, project=project, location=location)


_client: Optional[genai.Client] = None


def get_genai_client() -> genai.Client:
    """Get or create the shared genai client on first use."""
    global _client
    if _client is None:
        settings = get_settings()
        _client = build_client(
            api_key=settings.GEMINI_API_KEY,
            project=settings.GCP_PROJECT,
            location=settings.GCP_LOCATION,
        )
    return _client


def image_part(image: UploadedImage) -> types.Part:
    return types.Part.from_bytes(data=image.data, mime_type=image.mime_type)


async def generate_content(
    client: Optional[Any],
    model: str,
    parts: list,
    config: types.GenerateContentConfig,
    timeout: float,
) -> types.GenerateContentResponse:
    """
    Issue one generate_content call on the async API.

    ``client`` defaults to the shared client. Timeouts, API errors and
    network errors are raised as TransportFailure.
    """
    if client is None:
        client = get_genai_client()
    try:
        return await asyncio.wait_for(
            client.aio.models.generate_content(
                model=model,
                contents=[types.Content(role="user", parts=parts)],
                config=config,
            ),
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        logger.error(f"{model} call timed out after {timeout}s")
        raise TransportFailure(
            f"The AI service did not respond within {timeout:.0f} seconds. Please try again."
        ) from e
    except genai_errors.APIError as e:
        logger.error(f"{model} call failed: {e}")
        raise TransportFailure(f"The AI service returned an error: {e.message or e.status}") from e
    except httpx.HTTPError as e:
        logger.error(f"{model} request error: {e}")
        raise TransportFailure(f"Could not reach the AI service: {e}") from e
