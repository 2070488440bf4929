"""Plain-text rendering for the terminal front end."""

import textwrap
from typing import Optional

from pcexpert.config_loader import ConsultationConfig
from pcexpert.logic.consultation import QUESTION_STEPS, Step
from pcexpert.logic.grid import layout_grid
from pcexpert.models import (
    AlternativesPanel,
    Build,
    ComponentSpec,
    ExplanationResult,
    TraceEntry,
)

# Display order of the result cards (differs from the aggregation order).
COMPONENT_LABELS = {
    "cpu": "Processor",
    "ram": "Memory",
    "motherboard": "Motherboard",
    "gpu": "Graphics Card",
    "storage": "Storage",
    "psu": "Power Supply",
    "case": "Case",
}


def confidence_label(conf: Optional[float]) -> str:
    conf = conf or 0.0
    if conf >= 0.9:
        return "Excellent Match"
    if conf >= 0.8:
        return "Very Good"
    if conf >= 0.7:
        return "Good Choice"
    return "Acceptable"


def format_percent(conf: Optional[float]) -> str:
    return f"{round((conf or 0.0) * 100)}%"


def format_price(price: Optional[float]) -> str:
    price = price or 0.0
    return f"${price:,.0f}" if float(price).is_integer() else f"${price:,.2f}"


def _yes_no(value) -> str:
    return "Yes" if value == "yes" else "No"


def _upper(value) -> str:
    return str(value).upper() if value is not None else ""


def _with_unit(value, unit: str) -> str:
    return f"{value}{unit}" if value is not None else ""


def spec_lines(key: str, component: ComponentSpec) -> list[tuple[str, str]]:
    """(label, value) pairs shown on a component card."""
    a = component.attributes()
    specs: list[tuple[str, str]] = []

    if key == "cpu":
        specs = [("Cores", a.get("cores")), ("Threads", a.get("threads")),
                 ("Socket", a.get("socket")), ("Brand", a.get("brand"))]
    elif key == "motherboard":
        specs = [("Chipset", a.get("chipset")), ("Socket", a.get("socket")),
                 ("RAM Type", _upper(a.get("ramType")))]
    elif key == "ram":
        specs = [("Capacity", _with_unit(a.get("capacity"), "GB")), ("Type", _upper(a.get("type"))),
                 ("Speed", _with_unit(a.get("speed"), "MHz"))]
        if a.get("hasRGB"):
            specs.append(("RGB", _yes_no(a["hasRGB"])))
    elif key == "gpu":
        specs = [("Brand", _upper(a.get("brand"))), ("TDP", _with_unit(a.get("tdp"), "W"))]
    elif key == "storage":
        specs = [("Type", _upper(a.get("type"))), ("Capacity", _with_unit(a.get("capacity"), "GB"))]
    elif key == "psu":
        specs = [("Wattage", _with_unit(a.get("wattage"), "W")), ("Efficiency", a.get("efficiency"))]
    elif key == "case":
        specs = [("Form Factor", str(a.get("formFactor") or "").replace("_", " ", 1))]
        if a.get("hasRGB"):
            specs.append(("RGB", _yes_no(a["hasRGB"])))
        if a.get("aioSupport"):
            specs.append(("AIO Support", _yes_no(a["aioSupport"])))

    return [(label, "" if value is None else str(value)) for label, value in specs]


# =============================================================================
# QUESTIONNAIRE
# =============================================================================

def progress_bar(step: Step, usage: str) -> str:
    """One segment per question; the gaming segment only for gaming builds."""
    order = [s for s in QUESTION_STEPS if s != Step.GAMING or usage == "gaming"]
    current = order.index(step) if step in order else -1
    segments = []
    for i, s in enumerate(order):
        if i == current:
            segments.append("[#]")
        elif i < current:
            segments.append("[=]")
        else:
            segments.append("[ ]")
    return " ".join(segments)


def render_question(step: Step, usage: str, message: str, config: ConsultationConfig) -> str:
    lines = [progress_bar(step, usage), "", message, ""]
    for i, option in enumerate(config.options_for(step.value), start=1):
        lines.append(f"  {i}. {option.icon} {option.label} - {option.desc}")
    return "\n".join(lines)


# =============================================================================
# RESULT VIEW
# =============================================================================

def render_card(key: str, component: ComponentSpec, width: int, chosen: bool = False) -> list[str]:
    inner = width - 4
    title = COMPONENT_LABELS.get(key, key)
    body = [
        f"{title} ({key})",
        *textwrap.wrap(component.name or "-", inner),
        f"{format_price(component.price)}  {format_percent(component.confidence)}",
    ]
    for label, value in spec_lines(key, component):
        body.append(f"{label}: {value}"[:inner])
    body.append("* Using alternative" if chosen else "")

    border = "+" + "-" * (width - 2) + "+"
    return [border] + [f"| {line[:inner].ljust(inner)} |" for line in body] + [border]


def render_build(build: Build, chosen: dict, columns: int, card_width: int, gap: int = 2) -> str:
    """Result cards laid out as a centered grid, followed by the totals."""
    keys = [k for k in COMPONENT_LABELS if getattr(build, k) is not None]
    cards = [render_card(k, getattr(build, k), card_width, k in chosen) for k in keys]

    out = []
    for row in layout_grid(cards, columns):
        height = max(len(card) for card in row if card is not None)
        blank = [" " * card_width] * height
        padded = [
            (card if card is not None else blank) + [" " * card_width] * (height - len(card or blank))
            for card in row
        ]
        for parts in zip(*padded):
            out.append((" " * gap).join(parts).rstrip())

    out.append("")
    out.append(
        f"Total Investment: {format_price(build.total_cost)}   "
        f"{format_percent(build.overall_confidence)} - {confidence_label(build.overall_confidence)}"
    )
    return "\n".join(out)


def render_trace(trace: list[TraceEntry]) -> str:
    lines = [f"Reasoning Trace ({len(trace)} steps)"]
    lines.extend(f"[{t.type}] {t.subject}: {t.message}" for t in trace)
    return "\n".join(lines)


def render_explanation(explanation: ExplanationResult) -> str:
    lines = [f"Why This Component? ({explanation.component})", "",
             explanation.human_text or explanation.raw_text]
    if explanation.confidence is not None:
        lines.extend(["", f"{format_percent(explanation.confidence)} confident"])
    return "\n".join(lines)


def render_alternatives(panel: AlternativesPanel) -> str:
    title = f"Alternatives for {COMPONENT_LABELS.get(panel.component, panel.component)}"
    if panel.loading:
        return f"{title}\n  Loading..."
    if panel.error:
        return f"{title}\n  Could not load alternatives: {panel.error}"
    if not panel.items:
        return f"{title}\n  No alternatives available."

    lines = [title]
    for i, alt in enumerate(panel.items, start=1):
        badge = "  [Recommended]" if alt.selected else ""
        lines.append(f"  {i}. {alt.name}  {format_price(alt.price)}  {format_percent(alt.confidence)}{badge}")
        if alt.details:
            lines.append(f"     {alt.details}")
    return "\n".join(lines)
