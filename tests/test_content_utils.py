import pytest

from chatnorm import content_utils as cu


@pytest.mark.parametrize("text", ["", "hello", "  spaced  ", "多语言 text\nwith newline"])
def test_plain_string_content_is_returned_verbatim(text):
    for extract in (cu.extract_claude_content, cu.extract_openai_content):
        result = extract(text)
        assert result.text == text
        assert result.images == []


def test_claude_text_and_base64_images_in_order():
    content = [
        {"type": "text", "text": "look "},
        {"type": "image", "source": {"type": "base64", "media_type": "image/jpeg", "data": "AAA"}},
        {"type": "text", "text": "here"},
        {"type": "image", "source": {"type": "base64", "data": "BBB"}},
    ]

    result = cu.extract_claude_content(content)

    assert result.text == "look here"
    assert [(img.mime_type, img.data) for img in result.images] == [("image/jpeg", "AAA"), ("image/png", "BBB")]


def test_claude_drops_non_inline_images_and_unknown_items():
    content = [
        {"type": "image", "source": {"type": "url", "url": "https://example.com/a.png"}},
        {"type": "image", "source": {"type": "base64", "data": ""}},
        {"type": "document", "text": "ignored"},
        "not-a-dict",
        {"type": "text"},
        {"type": "text", "text": "kept"},
    ]

    result = cu.extract_claude_content(content)

    assert result.text == "kept"
    assert result.images == []


def test_openai_data_url_images_are_decoded():
    content = [
        {"type": "text", "text": "describe"},
        {"type": "image_url", "image_url": {"url": "data:image/webp;base64,UklGR"}},
        {"type": "image_url", "image_url": {"url": "https://example.com/cat.png"}},
        {"type": "image_url", "image_url": {"url": "data:application/pdf;base64,JVBER"}},
    ]

    result = cu.extract_openai_content(content)

    assert result.text == "describe"
    assert len(result.images) == 1
    assert result.images[0].mime_type == "image/webp"
    assert result.images[0].data == "UklGR"


def test_malformed_content_degrades_to_empty():
    for extract in (cu.extract_claude_content, cu.extract_openai_content):
        for content in (None, 42, {"type": "text", "text": "x"}):
            result = extract(content)
            assert result.text == ""
            assert result.images == []


def test_parse_image_data_url():
    assert cu.parse_image_data_url("data:image/png;base64,abc") == ("image/png", "abc")
    assert cu.parse_image_data_url("data:text/plain;base64,abc") is None
    assert cu.parse_image_data_url(None) is None


def test_join_text_items():
    assert cu.join_text_items("raw") == "raw"
    assert cu.join_text_items([{"type": "text", "text": "a"}, {"type": "image"}, {"type": "text", "text": "b"}]) == "ab"
    assert cu.join_text_items(None) == ""
