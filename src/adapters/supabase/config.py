from __future__ import annotations

import logging
import os
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)


def env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r; using %s", name, raw, default)
        return default


@dataclass(frozen=True, slots=True)
class SupabaseRuntimeConfig:
    url: str
    anon_key: str
    access_token: str | None = None
    timeout_s: float = 10.0

    @staticmethod
    def from_env() -> "SupabaseRuntimeConfig":
        url = (os.getenv("SUPABASE_URL") or "").strip()
        anon_key = (os.getenv("SUPABASE_ANON_KEY") or "").strip()
        if not url or not anon_key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")

        access_token = os.getenv("SUPABASE_ACCESS_TOKEN")
        if access_token is not None:
            access_token = access_token.strip() or None

        return SupabaseRuntimeConfig(
            url=url.rstrip("/"),
            anon_key=anon_key,
            access_token=access_token,
            timeout_s=env_float("SUPABASE_TIMEOUT_S", 10.0),
        )

    @property
    def rest_url(self) -> str:
        return f"{self.url}/rest/v1"

    def realtime_url(self) -> str:
        """Websocket endpoint of the Realtime service."""

        if self.url.startswith("https://"):
            base = "wss://" + self.url[len("https://") :]
        elif self.url.startswith("http://"):
            base = "ws://" + self.url[len("http://") :]
        else:
            base = self.url
        return f"{base}/realtime/v1/websocket?apikey={self.anon_key}&vsn=1.0.0"

    def headers(self) -> dict[str, str]:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {self.access_token or self.anon_key}",
            "Accept": "application/json",
        }


def rest_client(
    cfg: SupabaseRuntimeConfig, *, transport: httpx.AsyncBaseTransport | None = None
) -> httpx.AsyncClient:
    """PostgREST client; the caller owns it and must close it."""

    return httpx.AsyncClient(
        base_url=cfg.rest_url,
        headers=cfg.headers(),
        timeout=cfg.timeout_s,
        transport=transport,
    )
