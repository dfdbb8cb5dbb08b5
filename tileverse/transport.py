"""Minimal JSON-over-HTTP helpers shared by the Ollama and remote-agent clients.

Requests are plain blocking ``urllib`` calls pushed onto a worker thread so
the event loop keeps serving other agents while one endpoint is slow.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional
from urllib import error, request


class TransportError(RuntimeError):
    """Raised when an HTTP exchange fails or returns something other than JSON."""

    def __init__(self, message: str, *, url: str, status: Optional[int] = None) -> None:
        self.url = url
        self.status = status
        super().__init__(message)


def _perform_request(
    method: str,
    url: str,
    payload: Optional[dict[str, Any]],
    timeout: float,
) -> Any:
    """Execute one blocking request and decode the JSON body."""

    data = json.dumps(payload).encode("utf-8") if payload is not None else None
    headers = {"Accept": "application/json"}
    if data is not None:
        headers["Content-Type"] = "application/json"
    req = request.Request(url, data=data, headers=headers, method=method)

    try:
        with request.urlopen(req, timeout=timeout) as resp:
            raw = resp.read().decode("utf-8")
    except error.HTTPError as exc:
        body = exc.read().decode("utf-8", errors="ignore") if exc.fp else ""
        raise TransportError(
            f"{method} {url} failed with status {exc.code}: {body or exc.reason}",
            url=url,
            status=exc.code,
        ) from exc
    except error.URLError as exc:
        raise TransportError(f"Could not reach {url}: {exc.reason}", url=url) from exc
    except TimeoutError as exc:
        raise TransportError(f"Timed out waiting for {url}", url=url) from exc
    except UnicodeDecodeError as exc:
        raise TransportError(f"{url} returned a body that is not UTF-8.", url=url) from exc

    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise TransportError(f"{url} returned a non-JSON response.", url=url) from exc


async def get_json(url: str, *, timeout: float) -> Any:
    return await asyncio.to_thread(_perform_request, "GET", url, None, timeout)


async def post_json(url: str, payload: dict[str, Any], *, timeout: float) -> Any:
    return await asyncio.to_thread(_perform_request, "POST", url, payload, timeout)


__all__ = ["TransportError", "get_json", "post_json"]
