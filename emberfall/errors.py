"""Typed errors raised by the engine and its collaborators.

Engine errors are synchronous and never leave a session half-updated: every
transition computes the next snapshot first and commits it only on success.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for everything the engine raises on purpose."""


class HeroValidationError(EngineError, ValueError):
    """A hero build was rejected before any state changed."""


class HeroNotCreated(EngineError):
    """An operation needs a hero but the session has none yet."""


class SceneNotFound(EngineError, KeyError):
    """A scene id is not part of the campaign."""

    def __init__(self, scene_id: str) -> None:
        super().__init__(scene_id)
        self.scene_id = scene_id

    def __str__(self) -> str:
        return f"Scene {self.scene_id!r} does not exist"


class ChoiceNotFound(EngineError):
    """The choice id is not offered by the current scene."""

    def __init__(self, scene_id: str, choice_id: str) -> None:
        super().__init__(f"Scene {scene_id!r} has no choice {choice_id!r}")
        self.scene_id = scene_id
        self.choice_id = choice_id


class ChoiceGated(EngineError):
    """The choice exists but the hero's flags hide or lock it."""

    def __init__(self, scene_id: str, choice_id: str, flag: str) -> None:
        super().__init__(
            f"Choice {choice_id!r} in scene {scene_id!r} is gated by flag {flag!r}"
        )
        self.scene_id = scene_id
        self.choice_id = choice_id
        self.flag = flag


class NavigationCycleDetected(EngineError):
    """Fallback scenes kept redirecting without reaching a playable scene."""

    def __init__(self, path: list[str]) -> None:
        super().__init__(
            "Fallback chain did not settle after "
            f"{len(path)} hops: {' -> '.join(path)}"
        )
        self.path = path


class GameAlreadyComplete(EngineError):
    """The epilogue was reached; no further choices are accepted."""


class ContentError(ValueError):
    """The campaign definition is structurally broken."""


class StorageError(Exception):
    """Base class for persistence failures."""


class NotFound(StorageError):
    """No saved progress exists for the user."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"No saved progress for {user_id!r}")
        self.user_id = user_id


class Unavailable(StorageError):
    """The persistence backend cannot be reached or written."""
