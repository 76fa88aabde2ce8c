"""Contentful Delivery API client for Sigma LMS.

Wraps the hosted content-delivery REST API: given a content type and a
query, returns the matching entries with included links resolved in place.
There is no caching or retry here; callers decide what an empty result
means.
"""

import logging
import math
import os
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from sigma.tracker import ApiCallTracker
from sigma.models import Entry, parse_entry

logger = logging.getLogger("sigma.contentful")

DELIVERY_HOST = "cdn.contentful.com"
PREVIEW_HOST = "preview.contentful.com"

DEFAULT_TIMEOUT = 30.0


class ContentfulError(Exception):
    """Raised for transport failures and non-2xx CMS responses."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


# ============================================================================
# Configuration
# ============================================================================


class ContentfulConfig(BaseModel):
    """Connection settings, bound once at startup."""

    model_config = ConfigDict(frozen=True)

    space_id: Optional[str] = None
    environment: str = "master"
    delivery_token: Optional[str] = None
    preview_token: Optional[str] = None
    host: str = DELIVERY_HOST
    preview_host: str = PREVIEW_HOST
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)

    @property
    def is_configured(self) -> bool:
        return bool(self.space_id and self.delivery_token)


def _timeout_from_env() -> float:
    raw = (os.getenv("CONTENTFUL_TIMEOUT") or "").strip()
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        timeout = float(raw)
    except ValueError:
        timeout = None
    if timeout is None or not math.isfinite(timeout) or timeout <= 0:
        logger.warning(
            f"⚠️  Invalid CONTENTFUL_TIMEOUT {raw!r}; using {DEFAULT_TIMEOUT:g} seconds"
        )
        return DEFAULT_TIMEOUT
    return timeout


def load_config() -> ContentfulConfig:
    """Read Contentful settings from the environment."""
    return ContentfulConfig(
        space_id=os.getenv("CONTENTFUL_SPACE_ID") or None,
        environment=os.getenv("CONTENTFUL_ENVIRONMENT") or "master",
        delivery_token=os.getenv("CONTENTFUL_DELIVERY_TOKEN") or None,
        preview_token=os.getenv("CONTENTFUL_PREVIEW_TOKEN") or None,
        timeout=_timeout_from_env(),
    )


def validate_config(config: ContentfulConfig) -> None:
    """Ensure the required Contentful settings are present.

    Raises:
        ValueError: Naming every missing variable
    """
    missing = []
    if not config.space_id:
        missing.append("CONTENTFUL_SPACE_ID")
    if not config.delivery_token:
        missing.append("CONTENTFUL_DELIVERY_TOKEN")
    if missing:
        raise ValueError(f"Missing {' and '.join(missing)}. Add them to .env")


# ============================================================================
# Link Resolution
# ============================================================================


def _link_key(value: dict) -> Optional[tuple]:
    sys = value.get("sys")
    if isinstance(sys, dict) and sys.get("type") == "Link":
        return (sys.get("linkType"), sys.get("id"))
    return None


def _entity_key(value: dict) -> Optional[tuple]:
    sys = value.get("sys")
    if isinstance(sys, dict) and sys.get("type") in ("Entry", "Asset") and sys.get("id"):
        return (sys["type"], sys["id"])
    return None


def resolve_links(items: list[dict], includes: Optional[dict]) -> list[dict]:
    """Replace link objects inside entry fields with the included targets.

    Every entry or asset is copied once and shared by all links pointing at
    it, so the result is a graph: entries that link to each other reference
    the same dicts and may form cycles. Use ``to_json_tree`` before
    serializing any part of it.

    Args:
        items: Raw entries from a collection response
        includes: The response's ``includes`` block ({"Entry": [...], "Asset": [...]})

    Returns:
        New list of raw entries with links resolved; unknown targets stay links
    """
    def key(link_type: str, raw: dict) -> tuple:
        return (link_type, (raw.get("sys") or {}).get("id"))

    nodes: dict[tuple, dict] = {}
    for link_type in ("Entry", "Asset"):
        for raw in (includes or {}).get(link_type, []):
            nodes[key(link_type, raw)] = dict(raw)
    for raw in items:
        nodes.setdefault(key("Entry", raw), dict(raw))

    def resolve(value: Any) -> Any:
        if isinstance(value, list):
            return [resolve(v) for v in value]
        if not isinstance(value, dict):
            return value
        link = _link_key(value)
        if link is not None:
            return nodes.get(link, value)
        # Plain mapping, e.g. a rich-text node whose data.target is a link
        return {k: resolve(v) for k, v in value.items()}

    # Each node's own fields are walked once; targets are never copied again
    for node in nodes.values():
        fields = node.get("fields")
        if isinstance(fields, dict):
            node["fields"] = {name: resolve(v) for name, v in fields.items()}

    return [nodes[key("Entry", raw)] for raw in items]


def to_json_tree(value: Any) -> Any:
    """Copy part of a resolved graph into a tree that serializes as JSON.

    Each entry or asset is expanded the first time it is reached; later
    references to it, including cycles, are written back as links.
    """
    expanded: set[tuple] = set()

    def copy(value: Any) -> Any:
        if isinstance(value, list):
            return [copy(v) for v in value]
        if not isinstance(value, dict):
            return value
        key = _entity_key(value)
        if key is not None:
            if key in expanded:
                return {"sys": {"type": "Link", "linkType": key[0], "id": key[1]}}
            expanded.add(key)
        return {k: copy(v) for k, v in value.items()}

    return copy(value)


# ============================================================================
# Client
# ============================================================================


class ContentfulClient:
    """Async client for one Contentful space and environment."""

    def __init__(
        self,
        config: ContentfulConfig,
        tracker: ApiCallTracker,
        *,
        preview: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.tracker = tracker
        self.preview = preview
        self._token = config.preview_token if preview else config.delivery_token
        host = config.preview_host if preview else config.host
        self._client = httpx.AsyncClient(
            base_url=f"https://{host}",
            timeout=config.timeout,
            transport=transport,
        )

    @property
    def _environment_path(self) -> str:
        return f"/spaces/{self.config.space_id}/environments/{self.config.environment}"

    async def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> dict:
        if not self.config.space_id or not self._token:
            raise ContentfulError(
                "Contentful is not configured: set CONTENTFUL_SPACE_ID and "
                + ("CONTENTFUL_PREVIEW_TOKEN" if self.preview else "CONTENTFUL_DELIVERY_TOKEN")
            )

        self.tracker.increment()
        try:
            r = await self._client.get(
                self._environment_path + path,
                params=params,
                headers={"Authorization": f"Bearer {self._token}"},
            )
        except httpx.RequestError as e:
            logger.error(f"Contentful request failed: {type(e).__name__}: {e}")
            raise ContentfulError(str(e) or type(e).__name__) from e

        if r.is_error:
            try:
                message = r.json().get("message") or r.reason_phrase
            except (ValueError, AttributeError):
                message = r.text or r.reason_phrase
            logger.error(f"Contentful returned {r.status_code} for {path}: {message}")
            raise ContentfulError(message, status_code=r.status_code)

        return r.json()

    async def get_entries(
        self,
        content_type: str,
        query: Optional[dict[str, Any]] = None,
    ) -> list[Entry]:
        """Fetch entries of one content type.

        Args:
            content_type: Content type id, e.g. "lesson"
            query: Passthrough filters and pagination (limit, skip, include,
                order, fields.<name>)

        Returns:
            Matching entries, possibly empty

        Raises:
            ContentfulError: On network, auth or CMS failure
            EntryValidationError: If an item is not a well-formed entry
        """
        params = {"content_type": content_type, **(query or {})}
        logger.debug(f"Fetching {content_type} entries: {params}")

        data = await self._get("/entries", params)
        items = resolve_links(data.get("items", []), data.get("includes"))
        return [parse_entry(item) for item in items]

    async def get_entry(self, entry_id: str) -> Entry:
        """Fetch a single entry by id.

        Raises:
            ContentfulError: On failure, including 404 for unknown ids
        """
        data = await self._get(f"/entries/{entry_id}")
        return parse_entry(data)

    async def aclose(self) -> None:
        await self._client.aclose()
