"""In-memory template provider for simple use cases."""

from __future__ import annotations

from ...ports.rendering import ITemplateProvider


class InMemoryTemplateProvider(ITemplateProvider):
    """Simple in-memory template provider for testing and inline templates."""

    def __init__(self, templates: dict[str, str] | None = None) -> None:
        self._templates: dict[str, str] = dict(templates or {})

    async def load(self, template_code: str) -> str | None:
        return self._templates.get(template_code)

    async def save(self, template_code: str, body: str) -> None:
        self._templates[template_code] = body
