"""Consultation logic: state machine, merge engine, normalizer, grid layout."""

from .alternatives import build_override, merge_build
from .consultation import (
    ConsultationError,
    ConsultationSession,
    InvalidTransitionError,
    Step,
)
from .explanation import FormattedExplanation, format_explanation
from .grid import grid_columns, layout_grid, leading_placeholders

__all__ = [
    'ConsultationSession',
    'ConsultationError',
    'InvalidTransitionError',
    'Step',
    'merge_build',
    'build_override',
    'format_explanation',
    'FormattedExplanation',
    'grid_columns',
    'layout_grid',
    'leading_placeholders',
]
