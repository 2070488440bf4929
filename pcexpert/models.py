"""Pydantic schemas for the PC Builder consultation client.

Wire payloads from the expert system use camelCase (``totalCost``,
``gamingLevel``); Python code uses the snake_case field names and the
aliases handle the translation in both directions.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# Component slots of a build, in the order aggregates are computed.
COMPONENT_KEYS = ("cpu", "motherboard", "ram", "gpu", "storage", "psu", "case")


class ConsultationInputs(BaseModel):
    """Answers collected by the questionnaire, one field per step."""
    model_config = ConfigDict(populate_by_name=True)

    budget: str = ""
    usage: str = ""
    gaming_level: Optional[str] = Field("", alias="gamingLevel")  # only meaningful for usage=gaming
    cpu_preference: str = Field("none", alias="cpuPreference")
    rgb_importance: str = Field("dont_care", alias="rgbImportance")
    cooling_preference: str = Field("either", alias="coolingPreference")

    def to_payload(self) -> dict:
        """Six-field request body; an unanswered gaming level is sent as null."""
        payload = self.model_dump(by_alias=True)
        payload["gamingLevel"] = self.gaming_level or None
        return payload


# ========================================
# Build Schemas
# ========================================

class ComponentSpec(BaseModel):
    """One recommended part: name, price, confidence plus free-form specs.

    Spec attributes (cores, socket, wattage, formFactor, ...) differ per
    component type and are kept as extra fields.
    """
    model_config = ConfigDict(extra="allow")

    name: str = ""
    price: Optional[float] = None
    confidence: Optional[float] = None

    def attributes(self) -> dict:
        """Extra spec attributes beyond name/price/confidence."""
        return dict(self.__pydantic_extra__ or {})


class Build(BaseModel):
    """Recommendation result: seven component slots plus aggregates."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    cpu: Optional[ComponentSpec] = None
    motherboard: Optional[ComponentSpec] = None
    ram: Optional[ComponentSpec] = None
    gpu: Optional[ComponentSpec] = None
    storage: Optional[ComponentSpec] = None
    psu: Optional[ComponentSpec] = None
    case: Optional[ComponentSpec] = None

    total_cost: float = Field(0.0, alias="totalCost")
    overall_confidence: float = Field(0.0, alias="overallConfidence")

    def component(self, key: str) -> Optional[ComponentSpec]:
        if key not in COMPONENT_KEYS:
            raise KeyError(f"Unknown component '{key}'. Expected one of {COMPONENT_KEYS}")
        return getattr(self, key)

    def present_components(self) -> list[str]:
        """Component keys that actually carry a part."""
        return [k for k in COMPONENT_KEYS if getattr(self, k) is not None]


class AlternativeOffer(BaseModel):
    """A candidate replacement returned by the alternatives lookup."""
    model_config = ConfigDict(extra="allow")

    name: str
    price: float = 0.0
    confidence: Optional[float] = None
    details: Optional[str] = None
    selected: bool = False  # the expert system's own pick


class AlternativeOverride(BaseModel):
    """A user-accepted replacement for one component of the build."""
    model_config = ConfigDict(extra="allow")

    name: str = ""
    price: float = 0.0
    confidence: Optional[float] = None


class AlternativesPanel(BaseModel):
    """State of the alternatives list for one component.

    ``items`` is None while the lookup is in progress; an empty list is a
    valid "no alternatives available" answer.
    """
    component: str
    items: Optional[list[AlternativeOffer]] = None
    loading: bool = False
    error: Optional[str] = None


# ========================================
# Reasoning & Explanation Schemas
# ========================================

class TraceEntry(BaseModel):
    """One step of the expert system's reasoning trace."""
    model_config = ConfigDict(extra="allow")

    type: str = ""
    subject: str = ""
    message: str = ""


class ExplanationResult(BaseModel):
    """Normalized explanation for one component."""
    component: str
    raw_text: str = ""
    human_text: str = ""
    confidence: Optional[float] = None
