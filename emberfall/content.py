"""Campaign content: loading, validation, and content stores.

The bundled campaign ships as ``data/campaign.json``. A remote content store
can serve a different campaign over HTTP; when it cannot be reached the
bundled one is used instead and the store reports itself offline.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from functools import lru_cache
from pathlib import Path
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from emberfall.errors import ContentError
from emberfall.models import Campaign, Effect
from emberfall.navigator import SceneGraph
from emberfall.reference import DATA_DIR

logger = logging.getLogger(__name__)

BUNDLED_CAMPAIGN = DATA_DIR / "campaign.json"


# ---------------------------------------------------------------------------
# Loading and validation
# ---------------------------------------------------------------------------

def parse_campaign(data: Mapping[str, Any]) -> Campaign:
    """Validate raw campaign JSON into a Campaign.

    Raises:
        ContentError: malformed fields, a choice with both or neither of
            autoSuccess/skillCheck, or references to missing scenes.
    """
    try:
        campaign = Campaign.model_validate(data)
    except ValidationError as e:
        raise ContentError(f"Invalid campaign definition: {e}") from e
    validate_campaign(campaign)
    return campaign


def load_campaign(path: Path | None = None) -> Campaign:
    path = path or BUNDLED_CAMPAIGN
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ContentError(f"Cannot read campaign file {path}: {e}") from e
    return parse_campaign(data)


@lru_cache(maxsize=1)
def default_campaign() -> Campaign:
    return load_campaign()


def _effects(campaign: Campaign) -> Iterator[Effect]:
    for scene in campaign.scenes:
        if scene.on_enter is not None:
            yield scene.on_enter
        for choice in scene.choices:
            for outcome in choice.outcomes():
                if outcome.effects is not None:
                    yield outcome.effects


def validate_campaign(campaign: Campaign) -> list[str]:
    """Check scene references and report flags nothing can ever set.

    Structural problems raise ContentError. Unreachable flag gates are only
    warnings: they are logged and returned.
    """
    SceneGraph(campaign)

    settable = {name for effect in _effects(campaign) for name in effect.flags or {}}
    referenced: dict[str, str] = {}
    for scene in campaign.scenes:
        for choice in scene.choices:
            where = f"{scene.id}/{choice.id}"
            for flag in (choice.requires_flag, choice.hide_if_flag):
                if flag:
                    referenced.setdefault(flag, where)
            check = choice.skill_check
            if check is not None:
                for flag in (check.advantage_if_flag, check.disadvantage_if_flag):
                    if flag:
                        referenced.setdefault(flag, where)
    for ending in campaign.endings:
        for flag in (ending.requires_flag, ending.hide_if_flag):
            if flag:
                referenced.setdefault(flag, f"ending {ending.id}")

    warnings = [
        f"Flag {flag!r} used by {where} is never set by any effect"
        for flag, where in sorted(referenced.items())
        if flag not in settable
    ]
    for warning in warnings:
        logger.warning(warning)
    return warnings


# ---------------------------------------------------------------------------
# Content stores
# ---------------------------------------------------------------------------

class ContentStore(Protocol):
    async def get_campaign(self) -> Campaign: ...


class BundledContentStore:
    """Serves a campaign from a JSON file, the packaged one by default."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._campaign: Campaign | None = None

    async def get_campaign(self) -> Campaign:
        if self._campaign is None:
            self._campaign = load_campaign(self._path) if self._path else default_campaign()
        return self._campaign


class HttpContentStore:
    """Fetches ``GET {base_url}/api/campaign`` once and caches it.

    Args:
        base_url: Root URL of the remote content service.
        fallback: Store used when the remote one fails. Defaults to the
                  bundled campaign.
        timeout:  HTTP timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        fallback: ContentStore | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._fallback = fallback or BundledContentStore()
        self._timeout = timeout
        self._campaign: Campaign | None = None
        self.offline = False

    async def _fetch(self) -> Campaign:
        url = f"{self._base_url}/api/campaign"
        logger.debug("fetching campaign from %s", url)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            resp = await client.get(url)
            resp.raise_for_status()
        return parse_campaign(resp.json())

    async def get_campaign(self) -> Campaign:
        if self._campaign is not None:
            return self._campaign
        try:
            self._campaign = await self._fetch()
            self.offline = False
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Content service at %s unavailable, using bundled campaign: %s", self._base_url, e)
            self.offline = True
            self._campaign = await self._fallback.get_campaign()
        return self._campaign
