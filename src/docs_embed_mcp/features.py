"""Feature validation and crates.io version/feature lookup.

``validate_features`` is a pure check run before any build work is started.
``CratesIoClient`` answers which versions and features a crate publishes.
"""

import asyncio
import logging
from collections.abc import Iterable

import aiohttp
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from . import config
from .errors import NotFound, ValidationFailure
from .models.domain import normalize_features

logger = logging.getLogger(__name__)

LATEST_ALIASES = {"", "*", "latest"}

HTTP_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)


def validate_features(
    requested: Iterable[str] | None,
    available: Iterable[str],
    exclusive_groups: Iterable[Iterable[str]] = (),
) -> tuple[str, ...]:
    """Check requested features against the ones a crate version declares.

    Returns the normalized (stripped, deduplicated, sorted) feature tuple.

    Raises:
        ValidationFailure: Listing every unknown feature, or naming the first
            mutually exclusive group with two or more requested members.
    """
    features = normalize_features(requested)
    available_set = set(available)

    unknown = [f for f in features if f not in available_set]
    if unknown:
        available_list = ", ".join(sorted(available_set)) or "none"
        raise ValidationFailure(
            f"Unknown feature(s): {', '.join(unknown)}. "
            f"Available features: {available_list}"
        )

    for group in exclusive_groups:
        members = sorted(set(group) & set(features))
        if len(members) > 1:
            raise ValidationFailure(
                f"Features {', '.join(members)} are mutually exclusive "
                f"(group: {', '.join(group)})"
            )

    return features


class CratesIoClient:
    """Minimal crates.io API client for version resolution and feature lookup."""

    def __init__(
        self,
        base_url: str = config.CRATES_IO_API,
        session: aiohttp.ClientSession | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=config.HTTP_TIMEOUT),
                headers={
                    "User-Agent": f"docs-embed-mcp/{config.VERSION}",
                },
            )
            self._owns_session = True
        return self._session

    async def close(self):
        """Close the aiohttp session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(HTTP_ERRORS),
        reraise=True,
    )
    async def _get_json(self, path: str) -> dict:
        session = await self._ensure_session()
        url = f"{self.base_url}/{path}"
        async with session.get(url) as resp:
            if resp.status == 404:
                raise NotFound(f"Not found on crates.io: {path}")
            if resp.status != 200:
                raise aiohttp.ClientError(f"crates.io returned HTTP {resp.status}")
            return await resp.json()

    async def resolve_version(self, name: str, version: str | None = None) -> str:
        """Resolve ``None``/``*``/``latest`` to the newest stable version."""
        if version is not None and version.strip() not in LATEST_ALIASES:
            return version.strip()

        try:
            data = await self._get_json(f"crates/{name}")
        except HTTP_ERRORS as e:
            raise NotFound(f"Could not resolve latest version of {name}: {e}") from e

        crate_info = data.get("crate") or {}
        resolved = crate_info.get("max_stable_version") or crate_info.get(
            "max_version"
        )
        if not resolved:
            raise NotFound(f"No published version found for crate {name}")
        logger.debug(f"Resolved {name} latest -> {resolved}")
        return resolved

    async def get_features(self, name: str, version: str | None = None) -> list[str]:
        """Return the sorted feature names a crate version declares."""
        version = await self.resolve_version(name, version)
        try:
            data = await self._get_json(f"crates/{name}/{version}")
        except HTTP_ERRORS as e:
            raise NotFound(
                f"Could not fetch features for {name} v{version}: {e}"
            ) from e

        features = (data.get("version") or {}).get("features") or {}
        return sorted(features.keys())
