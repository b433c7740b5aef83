"""
Transcription schemes turning a Problem into an NLP.
"""

from .base import ConstraintBlock, NlpDescription, Transcription, VariablesMX
from .layout import LayoutBuilder, LayoutValues, VariableLayout
from .registry import (
    available_transcription_schemes,
    get_transcription_class,
    register_transcription,
)
from .trapezoidal import Trapezoidal


__all__ = [
    "ConstraintBlock",
    "LayoutBuilder",
    "LayoutValues",
    "NlpDescription",
    "Transcription",
    "Trapezoidal",
    "VariableLayout",
    "VariablesMX",
    "available_transcription_schemes",
    "get_transcription_class",
    "register_transcription",
]
