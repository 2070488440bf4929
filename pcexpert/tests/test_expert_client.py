"""Expert system HTTP client tests against a fake FastAPI service.

Requests go through httpx.ASGITransport, so the wire shapes (camelCase
payloads, error bodies, query parameters) are exercised for real.
"""

import asyncio

import httpx
import pytest
from pcexpert.expert_client import ExpertServiceError, ExpertSystemClient
from pcexpert.logic.consultation import ConsultationSession, Step
from pcexpert.models import ConsultationInputs


def _run(make_client, action):
    async def scenario():
        async with make_client() as client:
            return await action(client)
    return asyncio.run(scenario())


class TestGenerate:
    def test_posts_camel_case_payload(self, make_client, expert_app):
        inputs = ConsultationInputs(budget="mid_range", usage="office", cpu_preference="intel")
        build = _run(make_client, lambda c: c.generate(inputs))

        assert expert_app.state.build_requests == [{
            "budget": "mid_range", "usage": "office", "gamingLevel": None,
            "cpuPreference": "intel", "rgbImportance": "dont_care", "coolingPreference": "either",
        }]
        assert build.total_cost == 1450
        assert build.cpu.name == "AMD Ryzen 5 7600X"
        assert build.cpu.attributes()["socket"] == "AM5"

    def test_rejection_raises_with_server_message(self, make_client, expert_app):
        expert_app.state.build_error = {"error": "No PSU can power this combination"}
        with pytest.raises(ExpertServiceError) as exc:
            _run(make_client, lambda c: c.generate(ConsultationInputs()))
        assert exc.value.message == "No PSU can power this combination"
        assert exc.value.status_code == 400
        assert exc.value.payload == {"error": "No PSU can power this combination"}

    def test_rejection_without_error_field(self, make_client, expert_app):
        expert_app.state.build_error = {"detail": "nope"}
        with pytest.raises(ExpertServiceError) as exc:
            _run(make_client, lambda c: c.generate(ConsultationInputs()))
        assert exc.value.message == "Unknown error"


class TestSecondaryEndpoints:
    def test_trace_is_ordered(self, make_client):
        trace = _run(make_client, lambda c: c.fetch_trace())
        assert [t.type for t in trace] == ["RULE", "INFER", "SELECT"]
        assert trace[1].subject == "gpu"

    def test_explain_sends_component_and_kind(self, make_client, expert_app):
        text = _run(make_client, lambda c: c.explain("cpu"))
        assert text.startswith("The Ryzen 5 7600X")
        assert expert_app.state.explain_requests == [{"component": "cpu", "type": "why"}]

    def test_explain_error(self, make_client):
        with pytest.raises(ExpertServiceError) as exc:
            _run(make_client, lambda c: c.explain("psu"))
        assert exc.value.status_code == 404
        assert "psu" in exc.value.message

    def test_alternatives_parsed(self, make_client):
        offers = _run(make_client, lambda c: c.list_alternatives("gpu"))
        assert offers[0].name == "NVIDIA RTX 4070 Super"
        assert offers[1].price == 429.99
        assert offers[1].confidence is None

    def test_empty_alternatives(self, make_client):
        assert _run(make_client, lambda c: c.list_alternatives("psu")) == []

    def test_unknown_component_alternatives(self, make_client):
        with pytest.raises(ExpertServiceError, match="Unknown component 'fan'"):
            _run(make_client, lambda c: c.list_alternatives("fan"))


class TestTransport:
    def test_transport_errors_propagate(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        async def scenario():
            client = ExpertSystemClient("http://expert.invalid/api", transport=httpx.MockTransport(refuse))
            async with client:
                await client.fetch_trace()

        with pytest.raises(httpx.ConnectError):
            asyncio.run(scenario())

    def test_non_json_error_body(self):
        def broken(request):
            return httpx.Response(502, text="<html>Bad Gateway</html>")

        async def scenario():
            async with ExpertSystemClient("http://expert.invalid/api", transport=httpx.MockTransport(broken)) as client:
                await client.explain("cpu")

        with pytest.raises(ExpertServiceError) as exc:
            asyncio.run(scenario())
        assert exc.value.message == "Unknown error"
        assert exc.value.status_code == 502


class TestSessionOverHttp:
    def test_full_consultation(self, make_client, config, expert_app):
        async def scenario():
            async with make_client() as client:
                session = ConsultationSession(client, config, notify=lambda m: None)
                session.start()
                for field, value in [
                    ("budget", "mid_range"), ("usage", "gaming"), ("gaming_level", "1440p"),
                    ("cpu_preference", "amd"), ("rgb_importance", "nice_to_have"),
                ]:
                    await session.answer(field, value)
                await session.answer("cooling_preference", "air")
                await session.fetch_alternatives("gpu")
                session.choose_alternative(session.alternatives.items[0])
                return session

        session = asyncio.run(scenario())
        assert session.step == Step.RESULT
        assert session.history[-1] == Step.RESULT
        assert session.original_build.total_cost == 1450
        assert session.build.total_cost == 1500
        assert expert_app.state.build_requests[0]["gamingLevel"] == "1440p"

    def test_rejection_over_http(self, make_client, config, expert_app):
        expert_app.state.build_error = {"error": "Budget too low for 4K gaming"}
        messages = []

        async def scenario():
            async with make_client() as client:
                session = ConsultationSession(client, config, notify=messages.append)
                await session.generate_build()
                return session

        session = asyncio.run(scenario())
        assert session.step == Step.WELCOME
        assert messages == ["Error generating build: Budget too low for 4K gaming"]
        assert len(session.trace) == 3
