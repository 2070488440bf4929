"""HTTP client for the PC Builder expert system.

Wraps the four endpoints the consultation needs:

    POST /build          -> build JSON
    GET  /trace          -> {"trace": [...]}
    POST /explain        -> {"explanation": "..."}
    GET  /alternatives   -> {"alternatives": [...]}

A non-2xx answer raises ExpertServiceError carrying the server's error
message; network problems surface as httpx exceptions.
"""

import logging
from typing import Any, Optional, Protocol

import httpx

from pcexpert.models import AlternativeOffer, Build, ConsultationInputs, TraceEntry

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "http://localhost:8080/api"


class ExpertServiceError(Exception):
    """The expert system rejected a request."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


class ExpertService(Protocol):
    """What the consultation session needs from the expert system."""

    async def generate(self, inputs: ConsultationInputs) -> Build: ...

    async def fetch_trace(self) -> list[TraceEntry]: ...

    async def explain(self, component: str, kind: str = "why") -> str: ...

    async def list_alternatives(self, component: str) -> list[AlternativeOffer]: ...


def _error_message(payload: Any) -> str:
    if isinstance(payload, dict) and payload.get("error"):
        return str(payload["error"])
    return "Unknown error"


class ExpertSystemClient:
    """Async client for the expert system REST API.

    Usage:
        async with ExpertSystemClient("http://localhost:8080/api") as client:
            build = await client.generate(inputs)
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "ExpertSystemClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        resp = await self._client.request(method, path, **kwargs)
        try:
            data = resp.json()
        except ValueError:
            data = None

        if resp.is_error:
            message = _error_message(data)
            logger.warning(f"{method} {path} failed ({resp.status_code}): {message}")
            raise ExpertServiceError(message, status_code=resp.status_code, payload=data)
        return data

    async def generate(self, inputs: ConsultationInputs) -> Build:
        payload = inputs.to_payload()
        logger.info(f"Requesting build: {payload}")
        data = await self._request("POST", "/build", json=payload)
        return Build.model_validate(data or {})

    async def fetch_trace(self) -> list[TraceEntry]:
        data = await self._request("GET", "/trace")
        entries = (data or {}).get("trace") or []
        return [TraceEntry.model_validate(e) for e in entries]

    async def explain(self, component: str, kind: str = "why") -> str:
        data = await self._request("POST", "/explain", json={"component": component, "type": kind})
        return (data or {}).get("explanation") or ""

    async def list_alternatives(self, component: str) -> list[AlternativeOffer]:
        data = await self._request("GET", "/alternatives", params={"component": component})
        items = (data or {}).get("alternatives")
        if not isinstance(items, list):
            return []
        return [AlternativeOffer.model_validate(a) for a in items]
