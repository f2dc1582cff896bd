# poster_press/gateways/templates.py
"""Template sources: look up a poster template by identifier."""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path

import httpx

from poster_press.errors import StorageError
from poster_press.models.jobs import Template

from .rest import RestClient

logger = logging.getLogger(__name__)

_TEMPLATE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


class TemplateSource(ABC):
    """Abstract template lookup."""

    @abstractmethod
    async def get(self, template_id: str) -> Template | None:
        """
        Fetch a template.

        Returns:
            Template, or None if no template has that identifier

        Raises:
            StorageError: If the backend could not be read
        """

    async def close(self) -> None:
        """Release resources. No-op by default."""


class LocalTemplateSource(TemplateSource):
    """Templates stored as ``<directory>/<template_id>.tex`` files."""

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    async def get(self, template_id: str) -> Template | None:
        if not _TEMPLATE_ID_RE.match(template_id):
            logger.warning(f"Rejected malformed template id {template_id!r}")
            return None

        path = self._directory / f"{template_id}.tex"
        try:
            source = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to read template {template_id}: {e}") from e

        return Template(template_id=template_id, source=source)


class RestTemplateSource(TemplateSource):
    """Templates stored in a table row, source text in one column."""

    def __init__(
        self,
        client: RestClient,
        table: str = "templates",
        column: str = "beamer_tex_template",
    ) -> None:
        self._client = client
        self._table = table
        self._column = column

    async def get(self, template_id: str) -> Template | None:
        try:
            response = await self._client.request(
                "GET",
                f"/rest/v1/{self._table}",
                params={"id": f"eq.{template_id}", "select": self._column},
            )
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to fetch template {template_id}: {e}") from e

        rows = response.json()
        if not rows:
            return None

        source = rows[0].get(self._column)
        if not isinstance(source, str):
            return None
        return Template(template_id=template_id, source=source)

    async def close(self) -> None:
        await self._client.aclose()
