from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

import requests

from .errors import TransportError


@dataclass
class HttpConfig:
    user_agent: str
    connect_timeout: float = 10.0
    read_timeout: float = 30.0


class HttpClient:
    """Thin requests.Session wrapper that never retries.

    Every failure surfaces as TransportError; whoever calls the engine
    decides when to try again.
    """

    def __init__(self, cfg: HttpConfig, session: Optional[requests.Session] = None):
        self.cfg = cfg
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": cfg.user_agent})

    def get_json(self, url: str, params: Mapping[str, Any] | None = None, headers: Mapping[str, str] | None = None) -> Any:
        try:
            resp = self.session.request(
                "GET",
                url,
                params=dict(params or {}),
                headers=dict(headers or {}),
                timeout=(self.cfg.connect_timeout, self.cfg.read_timeout),
            )
        except requests.RequestException as e:
            raise TransportError(f"GET {url} failed: {e}") from e

        if not 200 <= resp.status_code < 300:
            raise TransportError(f"GET {resp.url} returned HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            return resp.json()
        except ValueError as e:
            raise TransportError(f"GET {resp.url} returned a body that is not JSON") from e

    def get_list(self, url: str, params: Mapping[str, Any] | None = None, headers: Mapping[str, str] | None = None) -> list[Any]:
        payload = self.get_json(url, params=params, headers=headers)
        if not isinstance(payload, list):
            raise TransportError(f"GET {url} returned {type(payload).__name__}, expected a list")
        return payload
