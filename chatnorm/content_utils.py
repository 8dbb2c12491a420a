"""内容提取工具函数模块。

从 Claude 与 OpenAI 两种消息 content 中拆分出纯文本与内联图片。
所有函数均为无状态纯函数，遇到无法识别的内容一律跳过，不抛异常。
"""

import logging
import re
from typing import Any, List, Optional, Tuple

from .models import ExtractedContent, InlineImage

logger = logging.getLogger(__name__)

# 只接受 image/<subtype>;base64,<payload> 形式的 data URL
_IMAGE_DATA_URL_PATTERN = re.compile(r"^data:image/(\w+);base64,(.+)$")

CLAUDE_ITEM_TEXT = "text"
CLAUDE_ITEM_IMAGE = "image"
CLAUDE_ITEM_TOOL_USE = "tool_use"
CLAUDE_ITEM_TOOL_RESULT = "tool_result"

OPENAI_ITEM_TEXT = "text"
OPENAI_ITEM_IMAGE_URL = "image_url"


# ---------------------------------------------------------------------------
# 通用工具
# ---------------------------------------------------------------------------

def safe_list(value: Any) -> List[Any]:
    """安全地将值转换为列表，如果不是列表则返回空列表。"""
    return value if isinstance(value, list) else []


def item_type(item: Any) -> Optional[str]:
    """返回 content item 的 type 标签，非 dict 时返回 None。"""
    if not isinstance(item, dict):
        return None
    value = item.get("type")
    return value if isinstance(value, str) else None


def text_of(value: Any) -> str:
    """取 text 字段值，缺失或非字符串时视为空串。"""
    return value if isinstance(value, str) else ""


def join_text_items(content: Any) -> str:
    """拼接 content 列表中所有 text item 的文本；字符串原样返回。"""
    if isinstance(content, str):
        return content
    return "".join(
        text_of(item.get("text"))
        for item in safe_list(content)
        if item_type(item) == "text"
    )


# ---------------------------------------------------------------------------
# data: URL 解析
# ---------------------------------------------------------------------------

def parse_image_data_url(value: Any) -> Optional[Tuple[str, str]]:
    """解析图片 data: URL，返回 (mime_type, base64_data)。"""
    if not isinstance(value, str):
        return None
    match = _IMAGE_DATA_URL_PATTERN.match(value)
    if not match:
        return None
    return f"image/{match.group(1)}", match.group(2)


# ---------------------------------------------------------------------------
# 内容提取
# ---------------------------------------------------------------------------

def extract_claude_content(content: Any) -> ExtractedContent:
    """从 Claude content 中提取文本和 base64 内联图片。"""
    if isinstance(content, str):
        return ExtractedContent(text=content)

    result = ExtractedContent()
    for item in safe_list(content):
        kind = item_type(item)
        if kind == CLAUDE_ITEM_TEXT:
            result.text += text_of(item.get("text"))
        elif kind == CLAUDE_ITEM_IMAGE:
            source = item.get("source")
            if isinstance(source, dict) and source.get("type") == "base64" and source.get("data"):
                result.images.append(
                    InlineImage(mime_type=source.get("media_type") or "image/png", data=source["data"])
                )
            else:
                logger.debug("Skipping Claude image with unsupported source")
        elif kind in (CLAUDE_ITEM_TOOL_USE, CLAUDE_ITEM_TOOL_RESULT):
            # 由消息映射层处理
            continue
        else:
            logger.debug("Skipping Claude content item of type %r", kind)
    return result


def extract_openai_content(content: Any) -> ExtractedContent:
    """从 OpenAI content 中提取文本和 data URL 图片。"""
    if isinstance(content, str):
        return ExtractedContent(text=content)

    result = ExtractedContent()
    for item in safe_list(content):
        kind = item_type(item)
        if kind == OPENAI_ITEM_TEXT:
            result.text += text_of(item.get("text"))
        elif kind == OPENAI_ITEM_IMAGE_URL:
            image_url = item.get("image_url")
            if isinstance(image_url, dict):
                image_url = image_url.get("url")
            parsed = parse_image_data_url(image_url)
            if parsed:
                mime_type, data = parsed
                result.images.append(InlineImage(mime_type=mime_type, data=data))
            else:
                logger.debug("Skipping OpenAI image_url that is not an inline base64 image")
        else:
            logger.debug("Skipping OpenAI content item of type %r", kind)
    return result
