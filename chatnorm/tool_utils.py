"""工具名称与工具定义转换模块。

- 工具名称清洗：后端只接受 [A-Za-z0-9_-]，最长 128 字符
- OpenAI / Claude tools → 后端 functionDeclarations
"""

import copy
import logging
import re
import threading
from collections import OrderedDict
from typing import Any, List, Optional, Tuple

logger = logging.getLogger(__name__)

MAX_TOOL_NAME_LENGTH = 128
DEFAULT_TOOL_NAME = "tool"
DEFAULT_NAME_CACHE_SIZE = 1024

# 后端拒绝的 JSON Schema 关键字
EXCLUDED_SCHEMA_KEYS = {
    "$schema",
    "additionalProperties",
    "minLength",
    "maxLength",
    "minItems",
    "maxItems",
    "uniqueItems",
    "exclusiveMaximum",
    "exclusiveMinimum",
    "const",
    "anyOf",
    "oneOf",
    "allOf",
    "any_of",
    "one_of",
    "all_of",
}


class ToolSchemaError(ValueError):
    """A tool definition cannot be converted for the backend."""


# ---------------------------------------------------------------------------
# 工具名称
# ---------------------------------------------------------------------------

def sanitize_tool_name(name: Any) -> str:
    """将工具名称清洗为后端可接受的形式。"""
    if not isinstance(name, str) or not name:
        return DEFAULT_TOOL_NAME
    cleaned = re.sub(r"[^a-zA-Z0-9_-]", "_", name)
    cleaned = re.sub(r"^_+|_+$", "", cleaned)
    if not cleaned:
        cleaned = DEFAULT_TOOL_NAME
    return cleaned[:MAX_TOOL_NAME_LENGTH]


class ToolNameCache:
    """记录 (session, model) 下清洗后名称到原始名称的映射，供响应侧还原。

    按 LRU 淘汰，最多保留 max_entries 条。
    """

    def __init__(self, max_entries: int = DEFAULT_NAME_CACHE_SIZE):
        self.max_entries = max(1, max_entries)
        self._names: "OrderedDict[Tuple[str, str, str], str]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._names)

    def set_mapping(self, session_id: str, model_name: str, safe_name: str, original_name: str):
        key = (session_id, model_name, safe_name)
        with self._lock:
            self._names[key] = original_name
            self._names.move_to_end(key)
            while len(self._names) > self.max_entries:
                self._names.popitem(last=False)

    def get_original(self, session_id: str, model_name: str, safe_name: str) -> str:
        key = (session_id, model_name, safe_name)
        with self._lock:
            if key not in self._names:
                return safe_name
            self._names.move_to_end(key)
            return self._names[key]


def process_tool_name(
    name: Any,
    session_id: Optional[str],
    model_name: Optional[str],
    name_cache: Optional[ToolNameCache] = None,
) -> str:
    """清洗工具名称，名称发生变化时记录映射。"""
    safe_name = sanitize_tool_name(name)
    if name_cache is not None and session_id and model_name and safe_name != name:
        name_cache.set_mapping(session_id, model_name, safe_name, name if isinstance(name, str) else "")
        logger.debug("Tool name %r sanitized to %r", name, safe_name)
    return safe_name


# ---------------------------------------------------------------------------
# 工具定义转换
# ---------------------------------------------------------------------------

def clean_parameters_schema(obj: Any) -> Any:
    """递归移除后端不支持的 schema 关键字。"""
    if isinstance(obj, dict):
        return {key: clean_parameters_schema(value) for key, value in obj.items() if key not in EXCLUDED_SCHEMA_KEYS}
    if isinstance(obj, list):
        return [clean_parameters_schema(item) for item in obj]
    return obj


def _declaration(name: Any, description: Any, parameters: Any, session_id, model_name, name_cache) -> dict:
    if not isinstance(name, str) or not name.strip():
        raise ToolSchemaError("Tool definition is missing a name")
    if parameters is None:
        parameters = {}
    if not isinstance(parameters, dict):
        raise ToolSchemaError(f"Tool '{name}' parameters must be a JSON object")

    cleaned = clean_parameters_schema(copy.deepcopy(parameters))
    cleaned.setdefault("type", "object")
    if cleaned.get("type") == "object" and not isinstance(cleaned.get("properties"), dict):
        cleaned["properties"] = {}

    return {
        "name": process_tool_name(name, session_id, model_name, name_cache),
        "description": description if isinstance(description, str) else "",
        "parameters": cleaned,
    }


def convert_openai_tools(
    tools: Any,
    session_id: Optional[str],
    model_name: Optional[str],
    name_cache: Optional[ToolNameCache] = None,
) -> List[dict]:
    """将 OpenAI tools 转换为后端 functionDeclarations。"""
    if not tools:
        return []
    if not isinstance(tools, list):
        raise ToolSchemaError("tools must be an array")

    result = []
    for tool in tools:
        if not isinstance(tool, dict):
            raise ToolSchemaError("Tool definition must be an object")
        if tool.get("type", "function") != "function":
            logger.debug("Skipping non-function tool of type %r", tool.get("type"))
            continue
        fn = tool.get("function")
        if not isinstance(fn, dict):
            raise ToolSchemaError("Function tool is missing its 'function' object")
        declaration = _declaration(
            fn.get("name"), fn.get("description"), fn.get("parameters"), session_id, model_name, name_cache
        )
        result.append({"functionDeclarations": [declaration]})
    return result


def convert_claude_tools(
    tools: Any,
    session_id: Optional[str],
    model_name: Optional[str],
    name_cache: Optional[ToolNameCache] = None,
) -> List[dict]:
    """将 Claude tools 转换为后端 functionDeclarations。"""
    if not tools:
        return []
    if not isinstance(tools, list):
        raise ToolSchemaError("tools must be an array")

    result = []
    for tool in tools:
        if not isinstance(tool, dict):
            raise ToolSchemaError("Tool definition must be an object")
        declaration = _declaration(
            tool.get("name"), tool.get("description"), tool.get("input_schema"), session_id, model_name, name_cache
        )
        result.append({"functionDeclarations": [declaration]})
    return result
