from .constants import (
    DEFAULT_NUM_MESH_POINTS,
    DEFAULT_OPTIM_SOLVER,
    DEFAULT_TRANSCRIPTION_SCHEME,
    MESH_TOLERANCE,
    ZERO_TOLERANCE,
)


__all__ = [
    "DEFAULT_NUM_MESH_POINTS",
    "DEFAULT_OPTIM_SOLVER",
    "DEFAULT_TRANSCRIPTION_SCHEME",
    "MESH_TOLERANCE",
    "ZERO_TOLERANCE",
]
