"""Alternative merge engine.

The build received from the expert system is kept untouched as the
*original* build. Whatever the user sees is derived from it by applying the
chosen per-component alternatives and recomputing the aggregates:

    working_build = merge_build(original_build, chosen_alternatives)

Reverting an alternative is just dropping its key and merging again.
"""

from typing import Mapping, Optional

from pcexpert.models import (
    COMPONENT_KEYS,
    AlternativeOffer,
    AlternativeOverride,
    Build,
    ComponentSpec,
)

ChosenAlternatives = Mapping[str, Optional[AlternativeOverride]]


def _apply_override(component: Optional[ComponentSpec], override: AlternativeOverride) -> ComponentSpec:
    """Overlay an override onto a component.

    Only fields the override was given are applied: price as float,
    confidence only when not null, every other attribute only when non-null.
    """
    data = component.model_dump() if component is not None else {}

    for key, value in override.model_dump(exclude_unset=True).items():
        if key == "price":
            data["price"] = float(value or 0)
        elif key == "confidence":
            if value is not None:
                data["confidence"] = float(value)
        elif value is not None:
            data[key] = value

    return ComponentSpec.model_validate(data)


def total_cost(build: Build) -> float:
    """Sum of component prices; missing components or prices count as zero."""
    total = 0.0
    for key in COMPONENT_KEYS:
        component = getattr(build, key)
        if component is not None and component.price:
            total += float(component.price)
    return total


def overall_confidence(build: Build) -> float:
    """Mean of the confidences that are defined, 0 when none are."""
    present = [
        float(getattr(build, key).confidence)
        for key in COMPONENT_KEYS
        if getattr(build, key) is not None and getattr(build, key).confidence is not None
    ]
    if not present:
        return 0.0
    return sum(present) / len(present)


def merge_build(original: Optional[Build], chosen: ChosenAlternatives) -> Optional[Build]:
    """Derive the working build from the original and the chosen alternatives.

    The original is deep-copied and never modified; calling this twice with
    the same arguments gives equal results.
    """
    if original is None:
        return None

    merged = original.model_copy(deep=True)

    for key in COMPONENT_KEYS:
        override = chosen.get(key)
        if override is None:
            continue
        setattr(merged, key, _apply_override(getattr(merged, key), override))

    merged.total_cost = total_cost(merged)
    merged.overall_confidence = overall_confidence(merged)
    return merged


def build_override(offer: AlternativeOffer, original_component: Optional[ComponentSpec]) -> AlternativeOverride:
    """Turn an accepted offer into an override.

    An offer without confidence inherits the original component's confidence
    (0 when the original has none either).
    """
    if offer.confidence is not None:
        confidence = float(offer.confidence)
    else:
        confidence = (original_component.confidence if original_component else None) or 0.0

    data = offer.model_dump()
    data["price"] = float(offer.price or 0)
    data["confidence"] = confidence
    return AlternativeOverride.model_validate(data)
