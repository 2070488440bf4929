"""Explanation normalizer.

The expert system answers "why this component?" with loosely formatted text:
a headline, an optional ``Selection Rationale:`` block and usually a
``Confidence: 0.87`` marker somewhere. This module turns that into a short
human-readable summary plus a numeric confidence.
"""

import re
from dataclasses import dataclass
from typing import Any, Optional


CONFIDENCE_PATTERN = re.compile(r"Confidence:\s*([0-9]*\.?[0-9]+)", re.IGNORECASE)

# Rationale runs until the next line break, the end of the text, or another
# confidence marker (plain or checkmark-prefixed).
RATIONALE_PATTERN = re.compile(
    r"Selection Rationale:\s*([\s\S]*?)(?:\n|$|✓\sConfidence|\bConfidence:)",
    re.IGNORECASE,
)

CONFIDENCE_WORD = re.compile(r"\bconfidence\b", re.IGNORECASE)

MAX_NOTE_LINES = 3


@dataclass
class FormattedExplanation:
    human_text: str = ""
    confidence: Optional[float] = None


def extract_confidence(text: str) -> Optional[float]:
    match = CONFIDENCE_PATTERN.search(text)
    return float(match.group(1)) if match else None


def extract_rationale(text: str) -> Optional[str]:
    match = RATIONALE_PATTERN.search(text)
    return match.group(1).strip() if match else None


def format_explanation(text: Any) -> FormattedExplanation:
    """Normalize a raw explanation string.

    Returns the first line of the text followed by either a "Why this
    choice" section (when a rationale marker is present) or up to three
    supporting lines as notes. Lines mentioning confidence are left out of
    the notes since the confidence is reported separately.

    Anything that is not a non-empty string gives an empty result.
    """
    if not text or not isinstance(text, str):
        return FormattedExplanation()

    confidence = extract_confidence(text)
    rationale = extract_rationale(text)

    human_text = text.split("\n")[0]

    if rationale:
        human_text += f"\n\nWhy this choice:\n{rationale}"
    else:
        lines = [line.strip() for line in re.split(r"\n+", text)]
        lines = [line for line in lines if line]
        notes = [line for line in lines if not CONFIDENCE_WORD.search(line)]
        if len(notes) > 1:
            human_text += "\n\nNotes:\n- " + "\n- ".join(notes[1:1 + MAX_NOTE_LINES])

    return FormattedExplanation(human_text=human_text, confidence=confidence)
