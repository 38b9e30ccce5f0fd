"""Template renderer port."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ITemplateRenderer(Protocol):
    """Renders a template code with a payload into message text.

    Implementations raise ``TemplateNotFoundError`` for unknown codes and
    leave ``[MISSING_VALUE]`` markers for unresolved placeholders.
    """

    async def render(self, template_code: str, payload: dict[str, Any]) -> str:
        ...


@runtime_checkable
class ITemplateProvider(Protocol):
    """Looks up raw template text by template code."""

    async def load(self, template_code: str) -> str | None:
        """Return the template body, or ``None`` if no template is registered."""
        ...
