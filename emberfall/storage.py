"""Progress persistence.

Saved sessions are JSON files, one per user, under a base directory:

    {base}/
      progress/
        {user-key}.json    ← SessionSnapshot, camelCase keys

Stores are last-write-wins. ``load`` raises NotFound when nothing was saved;
filesystem failures surface as Unavailable. ResilientProgressStore keeps play
going in memory when its primary store is unavailable.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote

from pydantic import ValidationError

from emberfall.errors import NotFound, Unavailable
from emberfall.models import SessionSnapshot

logger = logging.getLogger(__name__)

REQUIRED_PROGRESS_KEYS = ("currentSceneId", "log", "visitedScenes", "conversation")


class InvalidProgress(ValueError):
    """A progress payload is missing keys or does not validate."""


def validate_progress_payload(payload: Any) -> SessionSnapshot:
    """Turn a raw progress payload into a snapshot.

    ``hero`` may be null; the other snapshot keys must be present.
    """
    if not isinstance(payload, dict):
        raise InvalidProgress("Progress payload must be a JSON object")
    missing = [key for key in REQUIRED_PROGRESS_KEYS if key not in payload]
    if missing:
        raise InvalidProgress(f"Progress payload is missing {', '.join(missing)}")
    try:
        return SessionSnapshot.model_validate(payload)
    except ValidationError as e:
        raise InvalidProgress(f"Invalid progress payload: {e}") from e


def dump_progress(snapshot: SessionSnapshot) -> dict[str, Any]:
    return snapshot.model_dump(mode="json", by_alias=True)


def user_key(user_id: str) -> str:
    """Filename stem for a user id.

    Percent-encoding keeps distinct ids distinct and leaves no path separators.
    """
    return quote(user_id, safe="") or "%"


class ProgressStore(Protocol):
    def load(self, user_id: str) -> SessionSnapshot: ...
    def save(self, user_id: str, snapshot: SessionSnapshot) -> None: ...
    def delete(self, user_id: str) -> None: ...


class FileProgressStore:
    def __init__(self, base_path: Path) -> None:
        self._root = base_path / "progress"
        self._root.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _file(self, user_id: str) -> Path:
        return self._root / f"{user_key(user_id)}.json"

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text())

    def _write_json(self, path: Path, data: Any) -> None:
        path.write_text(json.dumps(data, indent=2))

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def load(self, user_id: str) -> SessionSnapshot:
        path = self._file(user_id)
        if not path.exists():
            raise NotFound(user_id)
        try:
            data = self._read_json(path)
        except OSError as e:
            raise Unavailable(f"Cannot read progress for {user_id!r}") from e
        except json.JSONDecodeError as e:
            raise InvalidProgress(f"Saved progress for {user_id!r} is corrupt") from e
        return validate_progress_payload(data)

    def save(self, user_id: str, snapshot: SessionSnapshot) -> None:
        try:
            self._write_json(self._file(user_id), dump_progress(snapshot))
        except OSError as e:
            raise Unavailable(f"Cannot write progress for {user_id!r}") from e

    def delete(self, user_id: str) -> None:
        try:
            self._file(user_id).unlink(missing_ok=True)
        except OSError as e:
            raise Unavailable(f"Cannot delete progress for {user_id!r}") from e


class MemoryProgressStore:
    """Keeps snapshots in a dict; stored values are private copies."""

    def __init__(self) -> None:
        self._data: dict[str, SessionSnapshot] = {}

    def load(self, user_id: str) -> SessionSnapshot:
        try:
            return self._data[user_id].model_copy(deep=True)
        except KeyError:
            raise NotFound(user_id) from None

    def save(self, user_id: str, snapshot: SessionSnapshot) -> None:
        self._data[user_id] = snapshot.model_copy(deep=True)

    def delete(self, user_id: str) -> None:
        self._data.pop(user_id, None)


class ResilientProgressStore:
    """Writes through to ``primary`` and falls back to ``local`` when it is down.

    Once the primary store has failed, ``local_only`` is set and later loads
    prefer the local copy, so progress made while offline is not lost behind
    an older remote save.
    """

    def __init__(self, primary: ProgressStore, local: ProgressStore | None = None) -> None:
        self.primary = primary
        self.local = local or MemoryProgressStore()
        self.local_only = False

    def _degrade(self, action: str, user_id: str, error: Unavailable) -> None:
        if not self.local_only:
            logger.warning("Progress store unavailable during %s for %r, keeping progress locally: %s",
                           action, user_id, error)
        self.local_only = True

    def load(self, user_id: str) -> SessionSnapshot:
        if self.local_only:
            try:
                return self.local.load(user_id)
            except NotFound:
                pass
        try:
            return self.primary.load(user_id)
        except Unavailable as e:
            self._degrade("load", user_id, e)
            return self.local.load(user_id)

    def save(self, user_id: str, snapshot: SessionSnapshot) -> None:
        self.local.save(user_id, snapshot)
        try:
            self.primary.save(user_id, snapshot)
        except Unavailable as e:
            self._degrade("save", user_id, e)

    def delete(self, user_id: str) -> None:
        self.local.delete(user_id)
        try:
            self.primary.delete(user_id)
        except Unavailable as e:
            self._degrade("delete", user_id, e)
