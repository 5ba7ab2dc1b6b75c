#!/usr/bin/env python3
"""
Tests for pulling the generated image out of generateContent replies.
"""

import base64
import json
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from generation_errors import ApiError, NoImageGenerated, ParseError
from response_extractor import (
    InlineDataPart,
    OtherPart,
    TextPart,
    extract,
    parse_response
)


def _b64(data):
    return base64.b64encode(data).decode("ascii")


def _image_part(data, mime_type="image/png"):
    return {"inlineData": {"mimeType": mime_type, "data": _b64(data)}}


def _body(*candidates, **extra):
    body = {"candidates": [{"content": {"parts": list(parts)}} for parts in candidates]}
    body.update(extra)
    return json.dumps(body)


def test_single_image():
    """A single image part comes back as the result."""
    print("=== Testing Single Image ===")

    result = extract(_body([{"text": "here you go"}, _image_part(b"PNGDATA")]))

    assert result.success
    assert result.image.data == b"PNGDATA"
    assert result.image.format == "png"
    assert result.error is None
    print("✓ Image extracted after a text part")


def test_error_takes_precedence():
    """An error object wins even when a valid image is present."""
    print("\n=== Testing Error Precedence ===")

    body = _body([_image_part(b"PNGDATA")], error={"message": "quota exceeded", "code": 429})
    result = extract(body)

    assert not result.success
    assert isinstance(result.error, ApiError)
    assert result.error.api_message == "quota exceeded"
    assert result.message == "API returned error: quota exceeded"
    print(f"✓ {result.message}")


def test_error_without_message():
    """An error object with a null message falls back to its status or code."""
    print("\n=== Testing Error Without Message ===")

    result = extract(json.dumps({"error": {"message": None, "status": "RESOURCE_EXHAUSTED"}}))
    assert result.message == "API returned error: RESOURCE_EXHAUSTED"

    result = extract(json.dumps({"error": {"message": None, "code": 503}}))
    assert result.message == "API returned error: 503"

    result = extract(json.dumps({"error": {"message": None}}))
    assert isinstance(result.error, ApiError)
    assert "None" not in result.message
    print("✓ No \"None\" in error messages")


def test_missing_or_empty_candidates():
    """No candidates at all is a missing image, not a parse failure."""
    print("\n=== Testing Missing Candidates ===")

    for body in ("{}", '{"candidates": []}', '{"candidates": null}'):
        result = extract(body)
        assert isinstance(result.error, NoImageGenerated), f"{body} -> {result.error!r}"
        assert result.message == "No image generated"
    print("✓ Missing / empty candidates -> NoImageGenerated")


def test_text_only_response():
    """A refusal keeps the model's text for the caller."""
    print("\n=== Testing Text-only Response ===")

    body = json.dumps(
        {
            "candidates": [
                {
                    "content": {"parts": [{"text": "sorry"}]},
                    "finishReason": "SAFETY",
                }
            ]
        }
    )
    result = extract(body)

    assert isinstance(result.error, NoImageGenerated)
    assert result.error.model_text == "sorry"
    assert result.error.finish_reason == "SAFETY"
    print("✓ Text kept on NoImageGenerated")


def test_first_image_wins():
    """The first image across candidates and parts is returned."""
    print("\n=== Testing First Image Wins ===")

    body = _body(
        [{"text": "thinking"}],
        [_image_part(b"FIRST", "image/jpeg"), _image_part(b"SECOND")],
        [_image_part(b"THIRD")],
    )
    result = extract(body)

    assert result.image.data == b"FIRST"
    assert result.image.format == "jpeg"
    print("✓ Earliest image chosen")


def test_non_image_inline_data_is_skipped():
    """Inline audio or other blobs are not images."""
    print("\n=== Testing Non-image Inline Data ===")

    body = _body([
        {"inlineData": {"mimeType": "audio/wav", "data": _b64(b"RIFF")}},
        _image_part(b"IMG", "image/webp"),
    ])
    result = extract(body)
    assert result.image.data == b"IMG"
    assert result.image.format == "webp"

    only_audio = _body([{"inlineData": {"mimeType": "audio/wav", "data": _b64(b"RIFF")}}])
    assert isinstance(extract(only_audio).error, NoImageGenerated)

    gif = extract(_body([_image_part(b"GIF89a", "image/gif")]))
    assert gif.image.format == "gif"
    assert gif.image.mime_type == "image/gif"
    print("✓ audio/wav skipped, gif tagged as gif")


def test_snake_case_fields():
    """inline_data / mime_type spellings are accepted."""
    print("\n=== Testing Snake Case Fields ===")

    body = {"candidates": [{"content": {"parts": [
        {"inline_data": {"mime_type": "image/png", "data": _b64(b"SNAKE")}}
    ]}}]}
    assert extract(body).image.data == b"SNAKE"
    print("✓ Dict body with snake case keys")


def test_malformed_json():
    """Unparseable bodies give a ParseError with a capped excerpt."""
    print("\n=== Testing Malformed JSON ===")

    body = "<html>" + "x" * 500 + "</html>"
    result = extract(body)

    assert isinstance(result.error, ParseError)
    assert len(result.error.excerpt) <= 200
    assert result.error.excerpt == body[:200]
    assert result.message.startswith("Failed to parse response:")
    print(f"✓ ParseError excerpt length {len(result.error.excerpt)}")


def test_wrong_shapes():
    """Valid JSON with the wrong structure is a parse failure."""
    print("\n=== Testing Wrong Shapes ===")

    for body in ('[]', '{"candidates": {}}', '{"candidates": ["x"]}',
                 '{"candidates": [{"content": {"parts": [{"text": 5}]}}]}'):
        result = extract(body)
        assert isinstance(result.error, ParseError), f"{body} -> {result.error!r}"
    print("✓ Shape errors -> ParseError")


def test_bad_image_base64():
    """A corrupt image payload is a parse failure."""
    print("\n=== Testing Corrupt Image Payload ===")

    body = _body([{"inlineData": {"mimeType": "image/png", "data": "not@@base64"}}])
    result = extract(body)
    assert isinstance(result.error, ParseError)
    print(f"✓ {result.message[:60]}")


def test_parse_response_parts():
    """Parts parse into the tagged union."""
    print("\n=== Testing Part Parsing ===")

    response = parse_response(_body([
        {"text": "hi"},
        _image_part(b"x"),
        {"functionCall": {"name": "f"}},
    ]))

    parts = response.candidates[0].parts
    assert parts[0] == TextPart(text="hi")
    assert isinstance(parts[1], InlineDataPart) and parts[1].is_image
    assert parts[2] == OtherPart(keys=("functionCall",))
    assert response.error_message is None
    print("✓ text / inlineData / other")


def run_all_tests():
    """Run all response extractor tests."""
    print("🧪 Running Response Extractor Tests")
    print("=" * 60)

    try:
        test_single_image()
        test_error_takes_precedence()
        test_error_without_message()
        test_missing_or_empty_candidates()
        test_text_only_response()
        test_first_image_wins()
        test_non_image_inline_data_is_skipped()
        test_snake_case_fields()
        test_malformed_json()
        test_wrong_shapes()
        test_bad_image_base64()
        test_parse_response_parts()

        print("\n" + "=" * 60)
        print("🎉 ALL RESPONSE EXTRACTOR TESTS PASSED!")

    except AssertionError as e:
        print(f"\n❌ TEST FAILED: {e}")
        return False
    except Exception as e:
        print(f"\n💥 UNEXPECTED ERROR: {e}")
        return False

    return True


if __name__ == "__main__":
    success = run_all_tests()
    sys.exit(0 if success else 1)
