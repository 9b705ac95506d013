from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig

# Extra seconds on top of a server-side wait before the HTTP call gives up.
_WAIT_GRACE = 5.0


class ApiClient:
    """Minimal HTTP client for the serial log service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.http_timeout)

    def close(self) -> None:
        self._client.close()

    def status(self) -> Dict[str, Any]:
        return self._request("GET", "/session").json()

    def connect(self, port: Optional[str] = None, baudrate: Optional[int] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        if port:
            body["port"] = port
        if baudrate:
            body["baudrate"] = baudrate
        return self._request("POST", "/session/connect", json=body).json()

    def disconnect(self) -> Dict[str, Any]:
        return self._request("POST", "/session/disconnect").json()

    def wait(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        return self._blocking_post("/session/wait", timeout)

    def read(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        return self._blocking_post("/session/read", timeout)

    def auto(self, timeout: Optional[float] = None) -> Dict[str, Any]:
        return self._blocking_post("/session/auto", timeout)

    def records(self) -> Dict[str, Any]:
        return self._request("GET", "/session/records").json()

    def export(self, fmt: str = "xlsx", formulas: bool = False) -> bytes:
        params = {"format": fmt, "formulas": str(formulas).lower()}
        return self._request("GET", "/session/export", params=params).content

    def diagnostics(self, since: int = 0) -> List[Dict[str, Any]]:
        return self._request("GET", "/diagnostics", params={"since": since}).json()

    def _blocking_post(self, path: str, timeout: Optional[float]) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        request_timeout: Optional[float] = None
        if timeout is not None:
            params["timeout"] = timeout
            request_timeout = timeout + _WAIT_GRACE
        return self._request("POST", path, params=params, timeout=request_timeout).json()

    def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1)
        return response

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
