"""Template rendering with ``{{key}}`` placeholders and a plain-text fallback."""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Any

from ..domain.message_snapshot import MAX_RENDERED_LENGTH
from ..exceptions import TemplateError, TemplateNotFoundError
from ..ports.rendering import ITemplateRenderer

if TYPE_CHECKING:
    from ..domain.message import Message
    from ..domain.message_snapshot import MessageSnapshot
    from ..ports.rendering import ITemplateProvider

logger = logging.getLogger(__name__)

MISSING_VALUE = "[MISSING_VALUE]"

_TEMPLATE_CODE = re.compile(r"^[a-zA-Z0-9_-]{1,50}$")
_PLACEHOLDER = re.compile(r"\{\{\s*([^}]+?)\s*\}\}")
_MAX_PAYLOAD_KEYS = 100
_MAX_OBJECT_CHARS = 200


def value_to_text(value: Any) -> str:
    """Render one payload value; objects become truncated JSON."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (dict, list, tuple)):
        text = json.dumps(value, default=str, separators=(",", ":"))
        if len(text) > _MAX_OBJECT_CHARS:
            return text[:_MAX_OBJECT_CHARS] + "..."
        return text
    return str(value)


def substitute(template: str, payload: dict[str, Any]) -> str:
    """Replace ``{{key}}`` with payload values; unknown keys become MISSING_VALUE."""

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in payload:
            return value_to_text(payload[key])
        return MISSING_VALUE

    return _PLACEHOLDER.sub(_replace, template)


class MustacheTemplateRenderer(ITemplateRenderer):
    """
    Minimal ``{{key}}`` renderer backed by an :class:`ITemplateProvider`.
    No external dependencies.
    """

    def __init__(self, provider: ITemplateProvider) -> None:
        self._provider = provider

    async def render(self, template_code: str, payload: dict[str, Any]) -> str:
        body = await self._provider.load(template_code)
        if body is None:
            raise TemplateNotFoundError(template_code)
        return substitute(body, payload)


class MessageRenderer:
    """Decides whether to render, validates the result, and falls back.

    The fallback never fails, so delivery is never blocked by a template
    problem.
    """

    def __init__(self, renderer: ITemplateRenderer | None = None) -> None:
        self._renderer = renderer

    @staticmethod
    def should_render(message: Message | MessageSnapshot) -> bool:
        code = message.template_code
        payload = message.payload
        if not code or not _TEMPLATE_CODE.match(code):
            return False
        return bool(payload) and len(payload or {}) <= _MAX_PAYLOAD_KEYS

    @staticmethod
    def is_valid_output(text: str) -> bool:
        if not text or not text.strip():
            return False
        if len(text) > MAX_RENDERED_LENGTH:
            return False
        if MISSING_VALUE in text:
            return False
        return any(ch.isalnum() for ch in text)

    @staticmethod
    def fallback(message: Message | MessageSnapshot) -> str:
        config = f" ({message.config_code})" if message.config_code else ""
        payload = (
            json.dumps(message.payload, default=str)
            if message.payload is not None
            else "[No Text]"
        )
        text = f"Message for {message.channel}{config} => {payload}"
        return text[:MAX_RENDERED_LENGTH]

    async def render(self, message: Message | MessageSnapshot) -> str:
        """Text to send for *message*: stored, rendered, or the fallback."""
        if message.rendered_message:
            return message.rendered_message
        if self._renderer is None or not self.should_render(message):
            return self.fallback(message)

        assert message.template_code is not None
        try:
            text = await self._renderer.render(message.template_code, message.payload or {})
        except TemplateError as exc:
            logger.warning(
                "Template %s unavailable for message %s: %s",
                message.template_code,
                message.id,
                exc,
            )
            return self.fallback(message)

        if not self.is_valid_output(text):
            logger.warning(
                "Rendered output for message %s failed validation; using fallback",
                message.id,
            )
            return self.fallback(message)
        return text
