"""Shared fixtures for the consultation client test suite.

Loads the REAL consultation.yaml (with the cosmetic generation delay turned
off) and provides two stand-ins for the expert system:

- FakeExpertService: in-process collaborator with call recording and
  per-call gates, for driving the state machine deterministically;
- a FastAPI app reached through httpx.ASGITransport, for exercising the
  real HTTP client.
"""

import asyncio
import copy
import sys
from pathlib import Path
from typing import Optional

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

# Ensure the package is importable without installation
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pcexpert.config_loader import load_consultation_config
from pcexpert.expert_client import ExpertServiceError, ExpertSystemClient
from pcexpert.logic.consultation import ConsultationSession
from pcexpert.models import AlternativeOffer, Build, TraceEntry


# =============================================================================
# DATA FIXTURES
# =============================================================================

# Prices sum to 1450, confidences average to exactly 0.75.
BUILD_PAYLOAD = {
    "cpu": {"name": "AMD Ryzen 5 7600X", "price": 299, "confidence": 1.0,
            "cores": 6, "threads": 12, "socket": "AM5", "brand": "AMD"},
    "motherboard": {"name": "MSI B650 Tomahawk", "price": 189, "confidence": 0.75,
                    "chipset": "B650", "socket": "AM5", "ramType": "ddr5"},
    "ram": {"name": "G.Skill Flare X5 32GB", "price": 119, "confidence": 0.5,
            "capacity": 32, "type": "ddr5", "speed": 6000, "hasRGB": "no"},
    "gpu": {"name": "AMD Radeon RX 7800 XT", "price": 549, "confidence": 1.0,
            "brand": "amd", "tdp": 263},
    "storage": {"name": "WD Black SN850X 1TB", "price": 109, "confidence": 0.75,
                "type": "nvme", "capacity": 1000},
    "psu": {"name": "Corsair RM750e", "price": 99, "confidence": 0.5,
            "wattage": 750, "efficiency": "80+ Gold"},
    "case": {"name": "Fractal Pop Air", "price": 86, "confidence": 0.75,
             "formFactor": "mid_tower", "hasRGB": "yes", "aioSupport": "yes"},
    "totalCost": 1450,
    "overallConfidence": 0.75,
}

TRACE_PAYLOAD = [
    {"type": "RULE", "subject": "budget", "message": "mid_range -> target $1,200 - $2,000"},
    {"type": "INFER", "subject": "gpu", "message": "1440p gaming requires 16GB VRAM class"},
    {"type": "SELECT", "subject": "cpu", "message": "AMD preference honored"},
]

ALTERNATIVES_PAYLOAD = {
    "gpu": [
        {"name": "NVIDIA RTX 4070 Super", "price": 599, "confidence": 0.88,
         "details": "Better ray tracing", "selected": False, "brand": "nvidia", "tdp": 220},
        {"name": "AMD Radeon RX 7700 XT", "price": "429.99", "confidence": None,
         "details": "Cheaper, slightly slower", "selected": False},
    ],
    "psu": [],
}

EXPLANATION_TEXT = (
    "The Ryzen 5 7600X is the best value AM5 chip for 1440p gaming.\n"
    "Selection Rationale: Great value for a mid-range gaming build\n"
    "✓ Confidence: 0.87"
)


@pytest.fixture
def build_payload():
    return copy.deepcopy(BUILD_PAYLOAD)


@pytest.fixture
def original_build(build_payload):
    return Build.model_validate(build_payload)


@pytest.fixture
def config():
    """Real consultation config with the minimum display delay disabled."""
    cfg = load_consultation_config()
    cfg.generation.min_display_delay_s = 0.0
    return cfg


# =============================================================================
# FAKE EXPERT SERVICE (in-process)
# =============================================================================

class FakeExpertService:
    """Scriptable ExpertService.

    ``gates`` maps a call label ("generate", "explain:cpu",
    "alternatives:gpu", ...) to an asyncio.Event the call waits on, so tests
    can hold a request open while issuing others.
    """

    def __init__(self, build_payload: Optional[dict] = None):
        self.build_payload = build_payload
        self.trace = [TraceEntry.model_validate(t) for t in TRACE_PAYLOAD]
        self.alternatives = copy.deepcopy(ALTERNATIVES_PAYLOAD)
        self.explanations = {"cpu": EXPLANATION_TEXT, "gpu": "Strong 1440p card\nConfidence: 0.91"}
        self.generate_error: Optional[Exception] = None
        self.trace_error: Optional[Exception] = None
        self.calls: list[tuple] = []
        self.gates: dict[str, asyncio.Event] = {}

    async def _gate(self, label: str):
        gate = self.gates.get(label)
        if gate is not None:
            await gate.wait()

    def count(self, name: str) -> int:
        return sum(1 for c in self.calls if c[0] == name)

    async def generate(self, inputs):
        self.calls.append(("generate", inputs.to_payload()))
        await self._gate("generate")
        if self.generate_error is not None:
            raise self.generate_error
        return Build.model_validate(copy.deepcopy(self.build_payload))

    async def fetch_trace(self):
        self.calls.append(("trace",))
        if self.trace_error is not None:
            raise self.trace_error
        return list(self.trace)

    async def explain(self, component, kind="why"):
        self.calls.append(("explain", component, kind))
        await self._gate(f"explain:{component}")
        if component not in self.explanations:
            raise ExpertServiceError(f"No explanation for {component}", status_code=404)
        return self.explanations[component]

    async def list_alternatives(self, component):
        self.calls.append(("alternatives", component))
        await self._gate(f"alternatives:{component}")
        if component not in self.alternatives:
            raise ExpertServiceError("Unknown component", status_code=404)
        return [AlternativeOffer.model_validate(a) for a in self.alternatives[component]]


@pytest.fixture
def fake_service(build_payload):
    return FakeExpertService(build_payload)


@pytest.fixture
def notifications():
    return []


@pytest.fixture
def session(fake_service, config, notifications):
    return ConsultationSession(fake_service, config, notify=notifications.append)


# Answers that walk the questionnaire up to (not including) cooling.
GAMING_ANSWERS = [
    ("budget", "mid_range"),
    ("usage", "gaming"),
    ("gaming_level", "1440p"),
    ("cpu_preference", "amd"),
    ("rgb_importance", "nice_to_have"),
]


@pytest.fixture
def gaming_answers():
    return list(GAMING_ANSWERS)


# =============================================================================
# FAKE EXPERT API (HTTP)
# =============================================================================

def _make_expert_app(build_payload: dict) -> FastAPI:
    app = FastAPI(title="Fake PC Builder Expert API")
    app.state.build_payload = build_payload
    app.state.build_error = None
    app.state.build_requests = []
    app.state.trace = copy.deepcopy(TRACE_PAYLOAD)
    app.state.alternatives = copy.deepcopy(ALTERNATIVES_PAYLOAD)
    app.state.explanations = {"cpu": EXPLANATION_TEXT}
    app.state.explain_requests = []

    @app.post("/api/build")
    async def build(request: Request):
        payload = await request.json()
        app.state.build_requests.append(payload)
        if app.state.build_error is not None:
            return JSONResponse(status_code=400, content=app.state.build_error)
        return app.state.build_payload

    @app.get("/api/trace")
    async def trace():
        return {"trace": app.state.trace}

    @app.post("/api/explain")
    async def explain(request: Request):
        body = await request.json()
        app.state.explain_requests.append(body)
        text = app.state.explanations.get(body.get("component"))
        if text is None:
            return JSONResponse(status_code=404, content={"error": f"No explanation for {body.get('component')}"})
        return {"explanation": text}

    @app.get("/api/alternatives")
    async def alternatives(component: str):
        if component not in app.state.alternatives:
            return JSONResponse(status_code=404, content={"error": f"Unknown component '{component}'"})
        return {"alternatives": app.state.alternatives[component]}

    return app


@pytest.fixture
def expert_app(build_payload):
    return _make_expert_app(build_payload)


@pytest.fixture
def make_client(expert_app):
    """Factory for an ExpertSystemClient wired to the fake API (create inside the event loop)."""
    def _factory() -> ExpertSystemClient:
        return ExpertSystemClient(
            "http://testserver/api",
            transport=httpx.ASGITransport(app=expert_app),
        )
    return _factory
