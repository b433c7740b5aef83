"""
Registry of transcription schemes.

Schemes register themselves by name with ``register_transcription``; the
Solver looks names up here and never falls back to a default scheme.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from ..exceptions import ConfigurationError


if TYPE_CHECKING:
    from .base import Transcription


logger = logging.getLogger(__name__)

_TRANSCRIPTION_SCHEMES: dict[str, type[Transcription]] = {}


def register_transcription(
    name: str,
) -> Callable[[type[Transcription]], type[Transcription]]:
    """
    Class decorator adding a Transcription subclass to the registry.

    Examples:
        >>> @register_transcription("my_scheme")
        ... class MyScheme(Transcription):
        ...     ...
    """
    if not isinstance(name, str) or not name.strip():
        raise ConfigurationError(f"Transcription scheme name must be a non-empty string: {name!r}")

    def decorator(cls: type[Transcription]) -> type[Transcription]:
        existing = _TRANSCRIPTION_SCHEMES.get(name)
        if existing is not None and existing is not cls:
            raise ConfigurationError(
                f"Transcription scheme '{name}' is already registered to {existing.__name__}"
            )
        cls.name = name
        _TRANSCRIPTION_SCHEMES[name] = cls
        logger.debug("Registered transcription scheme '%s' -> %s", name, cls.__name__)
        return cls

    return decorator


def get_transcription_class(name: str) -> type[Transcription]:
    try:
        return _TRANSCRIPTION_SCHEMES[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown transcription scheme '{name}'",
            f"Registered schemes: {', '.join(available_transcription_schemes()) or 'none'}",
        ) from None


def available_transcription_schemes() -> list[str]:
    return sorted(_TRANSCRIPTION_SCHEMES)
