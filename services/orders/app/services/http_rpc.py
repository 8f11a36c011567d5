"""Minimal JSON-over-HTTP request/response transport used by the remote clients."""

from __future__ import annotations

import json
import socket
import urllib.error
import urllib.request
from typing import Any


class RpcError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def post_json(url: str, body: Any, *, timeout: float) -> Any:
    req = urllib.request.Request(url, method="POST")
    req.add_header("Content-Type", "application/json")
    req.add_header("Accept", "application/json")

    data = json.dumps(body).encode("utf-8")
    try:
        with urllib.request.urlopen(req, data=data, timeout=timeout) as resp:
            raw = resp.read().decode("utf-8")
    except urllib.error.HTTPError as e:
        detail = e.read().decode("utf-8", errors="replace")
        raise RpcError(f"HTTP {e.code} from {url}: {detail}", status_code=e.code) from e
    except (urllib.error.URLError, socket.timeout, TimeoutError, ConnectionError) as e:
        raise RpcError(f"Request to {url} failed: {e}") from e

    try:
        return json.loads(raw)
    except ValueError as e:
        raise RpcError(f"Unexpected non-JSON response from {url}: {raw[:200]!r}") from e
