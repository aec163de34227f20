"""HTTP client for the Discourse REST API.

Covers the three calls the linking service needs: building the User API key
authorization URL, resolving a User API key to its owner, and creating a
post as a linked user through the system API key.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)


class DiscourseError(RuntimeError):
    """Raised when Discourse rejects a request or cannot be reached.

    ``status_code`` is the upstream HTTP status, or ``None`` on transport
    failures.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


@dataclass(frozen=True)
class DiscourseConfig:
    """Immutable configuration for Discourse access."""

    base_url: str
    api_key: str
    api_username: str = "system"
    timeout_seconds: float = 10.0


@dataclass(frozen=True)
class DiscourseUser:
    """Subset of ``current_user`` returned by ``/session/current.json``."""

    id: int
    username: str
    name: str | None = None


@dataclass(frozen=True)
class DiscoursePost:
    """Subset of the post returned by ``POST /posts.json``."""

    id: int
    topic_id: int
    topic_slug: str


def _error_text(response: httpx.Response) -> str:
    """Extract a readable error message from a Discourse error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, Mapping):
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            return "; ".join(str(item) for item in errors)
        if body.get("error"):
            return str(body["error"])
    return response.text


class DiscourseClient:
    """Async wrapper around the Discourse endpoints used for linking."""

    def __init__(
        self,
        config: DiscourseConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self._client = http_client
        self._owns_client = http_client is None
        self._client_lock = asyncio.Lock()

    @property
    def base_url(self) -> str:
        return self.config.base_url.rstrip("/")

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                )
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def build_user_api_auth_url(
        self,
        *,
        client_id: str,
        application_name: str,
        nonce: str,
        public_key: str,
        scopes: Sequence[str],
    ) -> str:
        """Return the URL that asks the user to grant a User API key."""
        query = "&".join(
            (
                f"client_id={quote(client_id, safe='')}",
                f"application_name={quote(application_name, safe='')}",
                f"nonce={quote(nonce, safe='')}",
                f"scopes={quote(','.join(scopes), safe='')}",
                f"public_key={quote(public_key, safe='')}",
            )
        )
        return f"{self.base_url}/user-api-key/new?{query}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        headers: Mapping[str, str],
        json_data: Any | None = None,
    ) -> Any:
        client = await self._ensure_client()
        try:
            response = await client.request(method, path, headers=dict(headers), json=json_data)
        except httpx.HTTPError as exc:
            logger.warning("Discourse %s %s failed: %s", method, path, exc)
            raise DiscourseError(f"Discourse request failed: {exc}") from exc

        if response.is_error:
            message = _error_text(response)
            logger.warning(
                "Discourse %s %s responded %d: %s", method, path, response.status_code, message
            )
            raise DiscourseError(
                f"Discourse API error: {response.status_code} - {message}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise DiscourseError(
                "Discourse returned a non-JSON response",
                status_code=response.status_code,
            ) from exc

    async def get_current_user(self, user_api_key: str) -> DiscourseUser:
        """Resolve a User API key to the Discourse account that granted it."""
        body = await self._request(
            "GET",
            "/session/current.json",
            headers={"User-Api-Key": user_api_key},
        )
        current = body.get("current_user") if isinstance(body, Mapping) else None
        if not isinstance(current, Mapping):
            raise DiscourseError("Discourse session has no current user", status_code=None)
        try:
            return DiscourseUser(
                id=int(current["id"]),
                username=str(current["username"]),
                name=current.get("name"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise DiscourseError("Malformed current user response") from exc

    async def create_post(
        self,
        *,
        username: str,
        title: str,
        raw: str,
        category: int | None = None,
    ) -> DiscoursePost:
        """Create a topic as ``username`` using the system API key."""
        payload: dict[str, Any] = {"title": title, "raw": raw}
        if category is not None:
            payload["category"] = category

        body = await self._request(
            "POST",
            "/posts.json",
            headers={
                "Api-Key": self.config.api_key,
                "Api-Username": username,
            },
            json_data=payload,
        )
        try:
            return DiscoursePost(
                id=int(body["id"]),
                topic_id=int(body["topic_id"]),
                topic_slug=str(body["topic_slug"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise DiscourseError("Malformed create post response") from exc

    def topic_url(self, post: DiscoursePost) -> str:
        return f"{self.base_url}/t/{post.topic_slug}/{post.topic_id}"
