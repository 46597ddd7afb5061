from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from google.genai import types

from conftest import FakeGenaiClient, make_uploaded
from creative_editor.errors import GenerationBlocked, NoImageProduced
from creative_editor.services.image_edit import ImageEditService, extract_edited_image


def _part(data=None, mime="image/png", text=None):
    inline = SimpleNamespace(data=data, mime_type=mime) if data is not None else None
    return SimpleNamespace(inline_data=inline, text=text)


def _response(parts, finish_reason="STOP", prompt_feedback=None):
    candidate = SimpleNamespace(content=SimpleNamespace(parts=parts), finish_reason=finish_reason)
    return SimpleNamespace(candidates=[candidate], prompt_feedback=prompt_feedback)


def test_first_inline_image_is_returned():
    response = _response(
        [_part(text="Here you go"), _part(b"first", "image/webp"), _part(b"second")]
    )
    edited = extract_edited_image(response)
    assert edited.data == b"first"
    assert edited.mime_type == "image/webp"
    assert edited.data_url.startswith("data:image/webp;base64,")


def test_non_stop_finish_reason_is_a_block():
    with pytest.raises(GenerationBlocked) as excinfo:
        extract_edited_image(_response([_part(text="no")], finish_reason=types.FinishReason.SAFETY))
    assert excinfo.value.reason == "SAFETY"
    assert "blocked" in excinfo.value.message
    assert "SAFETY" in excinfo.value.message


def test_prompt_block_without_candidates_is_a_block():
    response = SimpleNamespace(
        candidates=None,
        prompt_feedback=SimpleNamespace(block_reason="PROHIBITED_CONTENT"),
    )
    with pytest.raises(GenerationBlocked) as excinfo:
        extract_edited_image(response)
    assert excinfo.value.reason == "PROHIBITED_CONTENT"


@pytest.mark.parametrize("finish_reason", ["STOP", types.FinishReason.STOP, None])
def test_normal_finish_without_image_is_no_image(finish_reason):
    with pytest.raises(NoImageProduced):
        extract_edited_image(_response([_part(text="sorry")], finish_reason=finish_reason))


def test_empty_response_is_no_image():
    with pytest.raises(NoImageProduced):
        extract_edited_image(SimpleNamespace(candidates=[], prompt_feedback=None))


def test_edit_request_carries_image_mask_and_instruction():
    image = make_uploaded("orig.png")
    mask = make_uploaded("mask.png", color="magenta")
    client = FakeGenaiClient(_response([_part(b"edited")]))
    service = ImageEditService(client, model="edit-model", timeout=5.0)

    edited = asyncio.run(service.edit_image(image, "replace it", mask))

    assert edited.data == b"edited"
    call = client.calls[0]
    assert call["model"] == "edit-model"
    assert call["config"].response_modalities == [types.Modality.IMAGE]
    parts = call["contents"][0].parts
    assert parts[0].inline_data.data == image.data
    assert parts[1].inline_data.data == mask.data
    assert parts[2].text == "replace it"


def test_edit_without_mask_sends_two_parts():
    client = FakeGenaiClient(_response([_part(b"edited")]))
    service = ImageEditService(client, model="edit-model", timeout=5.0)

    asyncio.run(service.edit_image(make_uploaded(), "make it blue"))

    parts = client.calls[0]["contents"][0].parts
    assert len(parts) == 2
    assert parts[1].text == "make it blue"
