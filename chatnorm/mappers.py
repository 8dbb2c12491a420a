"""消息映射模块。

将 Claude / OpenAI 消息逐条映射为后端 canonical 消息序列。
每个 mapper 实例只服务于一次请求，持有该请求自己的 CanonicalHistory。
"""

import json
import logging
from typing import Any, List, Optional

from . import content_utils as cu
from .history import CanonicalHistory
from .models import FunctionCallPart, Part, SignatureContext, TextPart, ThoughtPart
from .signatures import SignatureProvider
from .tool_utils import ToolNameCache, process_tool_name

logger = logging.getLogger(__name__)

# 思考模式下占位的 thought 文本
THOUGHT_PLACEHOLDER = " "


class MessageMapper:
    """Shared assistant-turn assembly for both client schemas."""

    def __init__(
        self,
        enable_thinking: bool,
        model_name: str,
        session_id: str,
        signatures: SignatureProvider,
        name_cache: Optional[ToolNameCache] = None,
    ):
        self.enable_thinking = enable_thinking
        self.model_name = model_name
        self.session_id = session_id
        self.signatures = signatures
        self.name_cache = name_cache
        self.history = CanonicalHistory()

    def map(self, messages: Any) -> CanonicalHistory:
        for message in cu.safe_list(messages):
            if not isinstance(message, dict):
                logger.debug("Skipping non-object message entry")
                continue
            self.map_message(message)
        return self.history

    def map_message(self, message: dict):
        raise NotImplementedError

    def _signature_context(self) -> SignatureContext:
        return self.signatures.get(self.session_id, self.model_name)

    def _function_call(self, call_id: Any, name: Any, arguments: str, own_signature: Any, context: SignatureContext) -> FunctionCallPart:
        signature = None
        if self.enable_thinking:
            signature = own_signature if isinstance(own_signature, str) and own_signature else context.tool_signature
        return FunctionCallPart(
            id=call_id if isinstance(call_id, str) else "",
            name=process_tool_name(name, self.session_id, self.model_name, self.name_cache),
            arguments=arguments,
            signature=signature,
        )

    def _push_model_turn(
        self,
        text: str,
        thought_text: str,
        source_signature: Optional[str],
        calls: List[FunctionCallPart],
        context: SignatureContext,
    ):
        has_content = bool(text and text.strip())
        parts: List[Part] = []

        if self.enable_thinking:
            parts.append(ThoughtPart(text=thought_text))
        if has_content:
            parts.append(TextPart(text=text.rstrip(), signature=source_signature or context.reasoning_signature))
        # 先挂签名再剥离：关闭思考时第一个 part 不得携带签名
        if not self.enable_thinking and parts:
            parts[0].signature = None

        parts.extend(calls)
        self.history.push_model(parts, has_content)


class ClaudeMessageMapper(MessageMapper):
    """Map Claude Messages API history."""

    def map_message(self, message: dict):
        role = message.get("role")
        content = message.get("content")
        if role == "user":
            if any(cu.item_type(item) == cu.CLAUDE_ITEM_TOOL_RESULT for item in cu.safe_list(content)):
                self._map_tool_results(content)
            else:
                self.history.push_user(cu.extract_claude_content(content))
        elif role == "assistant":
            self._map_assistant(content)
        else:
            logger.debug("Skipping Claude message with role %r", role)

    def _map_assistant(self, content: Any):
        context = self._signature_context()
        text = ""
        calls: List[FunctionCallPart] = []

        if isinstance(content, str):
            text = content
        else:
            for item in cu.safe_list(content):
                kind = cu.item_type(item)
                if kind == cu.CLAUDE_ITEM_TEXT:
                    text += cu.text_of(item.get("text"))
                elif kind == cu.CLAUDE_ITEM_TOOL_USE:
                    arguments = json.dumps(item.get("input") or {}, ensure_ascii=False)
                    calls.append(
                        self._function_call(item.get("id"), item.get("name"), arguments, item.get("thoughtSignature"), context)
                    )
                else:
                    logger.debug("Skipping Claude assistant item of type %r", kind)

        self._push_model_turn(text, THOUGHT_PLACEHOLDER, None, calls, context)

    def _map_tool_results(self, content: List[Any]):
        dropped_text = False
        for item in content:
            if cu.item_type(item) != cu.CLAUDE_ITEM_TOOL_RESULT:
                dropped_text = dropped_text or cu.item_type(item) == cu.CLAUDE_ITEM_TEXT
                continue
            result = item.get("content")
            if isinstance(result, (str, list)):
                output = cu.join_text_items(result)
            else:
                output = ""
            self.history.push_function_response(item.get("tool_use_id"), output)
        if dropped_text:
            logger.debug("Dropped text co-located with tool results in a Claude user turn")


class OpenAIMessageMapper(MessageMapper):
    """Map OpenAI Chat Completions history."""

    def map_message(self, message: dict):
        role = message.get("role")
        if role == "user":
            self.history.push_user(cu.extract_openai_content(message.get("content")))
        elif role == "assistant":
            self._map_assistant(message)
        elif role == "tool":
            self._map_tool(message)
        elif role == "system":
            # system 消息已合并进 systemInstruction
            return
        else:
            logger.debug("Skipping OpenAI message with role %r", role)

    def _map_assistant(self, message: dict):
        context = self._signature_context()
        calls: List[FunctionCallPart] = []
        for tool_call in cu.safe_list(message.get("tool_calls")):
            if not isinstance(tool_call, dict):
                continue
            fn = tool_call.get("function")
            if not isinstance(fn, dict):
                fn = {}
            calls.append(
                self._function_call(
                    tool_call.get("id"),
                    fn.get("name"),
                    self._arguments_text(fn.get("arguments")),
                    tool_call.get("thoughtSignature"),
                    context,
                )
            )

        reasoning = message.get("reasoning_content")
        thought_text = reasoning if isinstance(reasoning, str) and reasoning else THOUGHT_PLACEHOLDER
        source_signature = message.get("thoughtSignature")
        if not isinstance(source_signature, str) or not source_signature:
            source_signature = None

        text = cu.extract_openai_content(message.get("content")).text
        self._push_model_turn(text, thought_text, source_signature, calls, context)

    @staticmethod
    def _arguments_text(arguments: Any) -> str:
        if isinstance(arguments, str):
            return arguments
        if arguments is None:
            return "{}"
        return json.dumps(arguments, ensure_ascii=False)

    def _map_tool(self, message: dict):
        content = message.get("content")
        if content is None:
            output = ""
        elif isinstance(content, (str, list)):
            output = cu.join_text_items(content)
        else:
            output = str(content)
        self.history.push_function_response(message.get("tool_call_id"), output)
