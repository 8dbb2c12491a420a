"""Session-scoped reasoning/tool signature lookup."""

import logging
import threading
from typing import Dict, Optional, Tuple

from .models import SignatureContext

logger = logging.getLogger(__name__)


class SignatureProvider:
    """Read-only lookup the message mappers consume."""

    def get(self, session_id: str, model_name: str) -> SignatureContext:
        raise NotImplementedError


class StaticSignatureProvider(SignatureProvider):
    """Return the same context for every session."""

    def __init__(self, reasoning_signature: Optional[str] = None, tool_signature: Optional[str] = None):
        self._context = SignatureContext(reasoning_signature=reasoning_signature, tool_signature=tool_signature)

    def get(self, session_id: str, model_name: str) -> SignatureContext:
        return self._context.model_copy()


class SignatureCache(SignatureProvider):
    """In-memory signature store keyed by (session id, resolved model).

    The normalizer only reads. Nothing in this package calls the setters:
    the Flask service built by ``create_app()`` without an explicit cache
    therefore always answers with the configured defaults. Code that parses
    backend responses should build one ``SignatureCache``, feed it through
    ``set_reasoning_signature`` / ``set_tool_signature`` and pass the same
    instance to ``create_app(config_manager, signatures)``.
    """

    def __init__(self, default_reasoning_signature: Optional[str] = None, default_tool_signature: Optional[str] = None):
        self.default_reasoning_signature = default_reasoning_signature
        self.default_tool_signature = default_tool_signature
        self._reasoning: Dict[Tuple[str, str], str] = {}
        self._tool: Dict[Tuple[str, str], str] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str, model_name: str) -> SignatureContext:
        key = (session_id, model_name)
        with self._lock:
            reasoning = self._reasoning.get(key)
            tool = self._tool.get(key)
        return SignatureContext(
            reasoning_signature=reasoning or self.default_reasoning_signature,
            tool_signature=tool or self.default_tool_signature,
        )

    def set_reasoning_signature(self, session_id: str, model_name: str, signature: str):
        if not signature:
            return
        with self._lock:
            self._reasoning[(session_id, model_name)] = signature
        logger.debug("Cached reasoning signature for %s/%s", session_id, model_name)

    def set_tool_signature(self, session_id: str, model_name: str, signature: str):
        if not signature:
            return
        with self._lock:
            self._tool[(session_id, model_name)] = signature
        logger.debug("Cached tool signature for %s/%s", session_id, model_name)
