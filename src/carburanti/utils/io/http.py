from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Dict, Protocol
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry


class HttpTransport(Protocol):
    def get(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        stream: bool = False,
    ) -> requests.Response: ...


@dataclass(frozen=True)
class HTTPConfig:
    timeout_sec: int = 30
    # 0 = sem retry; quem precisar de resiliência configura aqui
    max_retries: int = 0
    backoff_sec: float = 1.0
    headers: Optional[Dict[str, str]] = None


class RequestsTransport:
    def __init__(self, cfg: Optional[HTTPConfig] = None):
        self.cfg = cfg or HTTPConfig()
        session = requests.Session()
        retries = Retry(
            total=self.cfg.max_retries,
            backoff_factor=self.cfg.backoff_sec,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=("GET",),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retries)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        self.session = session

    def get(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        stream: bool = False,
    ) -> requests.Response:
        h = headers or self.cfg.headers
        return self.session.get(url, headers=h, timeout=self.cfg.timeout_sec, stream=stream)
