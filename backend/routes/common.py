"""Shared route helpers: the service dependency and engine error mapping."""

from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import HTTPException, Request

from backend.service import GameService
from emberfall.errors import (
    ChoiceGated,
    ChoiceNotFound,
    GameAlreadyComplete,
    HeroNotCreated,
    HeroValidationError,
    NavigationCycleDetected,
    NotFound,
    SceneNotFound,
    Unavailable,
)
from emberfall.storage import InvalidProgress

_STATUS: list[tuple[type[Exception], int]] = [
    (HeroValidationError, 422),
    (ChoiceNotFound, 404),
    (ChoiceGated, 409),
    (GameAlreadyComplete, 409),
    (HeroNotCreated, 409),
    (NotFound, 404),
    (Unavailable, 503),
    (NavigationCycleDetected, 500),
    (InvalidProgress, 400),
    (SceneNotFound, 400),
]


def get_service(request: Request) -> GameService:
    return request.app.state.service


@contextmanager
def http_errors() -> Iterator[None]:
    """Translate engine and storage errors raised inside the block."""
    try:
        yield
    except tuple(exc for exc, _ in _STATUS) as e:
        status = next(code for exc, code in _STATUS if isinstance(e, exc))
        raise HTTPException(status, str(e)) from e
