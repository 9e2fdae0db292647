from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx


@dataclass
class AsyncHttpClient:
    """Small JSON-over-HTTP client for provider REST APIs."""
    base_url: str
    bearer_token: Optional[str] = None
    timeout_seconds: float = 60
    transport: Optional[httpx.AsyncBaseTransport] = None

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers: Dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.bearer_token:
            headers["Authorization"] = f"Bearer {self.bearer_token}"
        if extra:
            headers.update(extra)
        return headers

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        base = self.base_url.rstrip("/")
        p = path.lstrip("/")
        return f"{base}/{p}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport)

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        async with self._client() as client:
            resp = await client.get(self._url(path), params=params or {}, headers=self._headers(headers))
        return self._handle_response(resp)

    async def post(self, path: str, json_body: Optional[Dict[str, Any]] = None, headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        async with self._client() as client:
            resp = await client.post(self._url(path), json=json_body or {}, headers=self._headers(headers))
        return self._handle_response(resp)

    async def download(self, url: str) -> httpx.Response:
        """GET raw bytes (no auth headers, generated-file CDNs reject them)."""
        async with self._client() as client:
            resp = await client.get(url, follow_redirects=True)
        resp.raise_for_status()
        return resp

    @staticmethod
    def _handle_response(resp: httpx.Response) -> Dict[str, Any]:
        text = resp.text
        try:
            data = resp.json()
        except (json.JSONDecodeError, ValueError):
            data = {"raw": text}

        if resp.status_code >= 400:
            err = data.get("error") if isinstance(data, dict) else None
            if isinstance(err, dict):
                detail = err.get("message") or str(err)
            elif isinstance(err, str):
                detail = err
            elif isinstance(data, dict) and (data.get("detail") or data.get("message")):
                detail = str(data.get("detail") or data.get("message"))
            else:
                detail = text or "no body"
            raise httpx.HTTPStatusError(
                f"HTTP {resp.status_code}: {detail}",
                request=resp.request,
                response=resp,
            )
        return data if isinstance(data, dict) else {"data": data}
