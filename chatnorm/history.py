"""Request-scoped canonical message sequence and tool-call registry."""

import logging
from typing import Any, Dict, List, Optional

from .models import CanonicalMessage, ExtractedContent, FunctionResponsePart, InlineDataPart, Part, TextPart

logger = logging.getLogger(__name__)


class CanonicalHistory:
    """Canonical messages built so far plus an index of the calls they contain.

    The call-id index is only ever fed from messages appended here, so a tool
    result can be resolved no matter how far it sits from its call. One
    instance belongs to exactly one request.
    """

    def __init__(self):
        self._messages: List[CanonicalMessage] = []
        self._call_names: Dict[str, str] = {}

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def messages(self) -> List[CanonicalMessage]:
        return list(self._messages)

    def append(self, message: CanonicalMessage):
        self._messages.append(message)
        for call in message.function_calls():
            # Later calls shadow earlier ones, matching a newest-first scan.
            self._call_names[call.id] = call.name

    def resolve(self, call_id: Optional[str]) -> Optional[str]:
        """Return the function name for a prior call id, or None when unknown."""
        if not isinstance(call_id, str):
            return None
        name = self._call_names.get(call_id)
        if name is None:
            logger.debug("Tool call id %r has no matching function call", call_id)
        return name

    # ------------------------------------------------------------------
    # Message helpers
    # ------------------------------------------------------------------

    def push_user(self, extracted: ExtractedContent):
        parts: List[Part] = [TextPart(text=extracted.text)]
        parts.extend(InlineDataPart(mime_type=image.mime_type, data=image.data) for image in extracted.images)
        self.append(CanonicalMessage(role="user", parts=parts))

    def push_function_response(self, call_id: Any, output: str):
        part = FunctionResponsePart(
            id=call_id if isinstance(call_id, str) else "",
            name=self.resolve(call_id),
            output=output,
        )
        self.append(CanonicalMessage(role="user", parts=[part]))

    def push_model(self, parts: List[Part], has_content: bool):
        self.append(CanonicalMessage(role="model", parts=parts, has_content=has_content))
