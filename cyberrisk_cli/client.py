from __future__ import annotations

from typing import Any, Dict, Optional

import requests

from cyberrisk_cli import __version__
from cyberrisk_cli.exceptions import (
    ApiError,
    AuthenticationError,
    NotFoundError,
    ValidationError,
)
from cyberrisk_cli.models.config import AppConfig


class RiskApiClient:
    """Talks to a risk register service over its JSON API.

    Every response is wrapped in ``{"success": ..., "data": ..., "error": ...}``;
    the client returns ``data`` and turns failures into CyberRiskError
    subclasses.
    """

    def __init__(self, config: AppConfig, timeout: float = 30.0) -> None:
        self._base_url = config.api_url
        self._timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({
            "User-Agent": f"cyberrisk-cli/{__version__}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        })
        if config.bearer_token:
            self._session.headers["Authorization"] = f"Bearer {config.bearer_token}"

    def get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        return self._request("GET", path, params=params)

    def post(self, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("POST", path, json=json)

    def put(self, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("PUT", path, json=json)

    def delete(self, path: str) -> Any:
        return self._request("DELETE", path)

    def list_risks(self, params: Optional[Dict[str, str]] = None) -> Any:
        return self.get("/risks", params=params)

    def get_risk(self, risk_id: str) -> Any:
        return self.get(f"/risks/{risk_id}")

    def create_risk(self, payload: Dict[str, Any]) -> Any:
        return self.post("/risks", json=payload)

    def update_risk(self, risk_id: str, payload: Dict[str, Any]) -> Any:
        return self.put(f"/risks/{risk_id}", json=payload)

    def delete_risk(self, risk_id: str) -> Any:
        return self.delete(f"/risks/{risk_id}")

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        normalized_path = path.lstrip("/")
        url = self._base_url + normalized_path
        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.RequestException as exc:
            raise ApiError(
                f"Cannot connect to {self._base_url}. "
                "Check your network connection and API URL."
            ) from exc

        if response.status_code in (401, 403):
            raise AuthenticationError(
                "Authentication failed. Your bearer token may have expired. "
                "Run cyberrisk-cli --init-remote to set a new token."
            )
        if response.status_code == 404:
            raise NotFoundError(
                _error_text(response) or f"Resource not found: {normalized_path}."
            )
        if response.status_code == 400:
            raise ValidationError(
                _error_text(response) or f"Request rejected for {normalized_path}."
            )
        if response.status_code >= 500:
            raise ApiError(
                f"Risk register server error ({response.status_code}). "
                "Please try again later."
            )

        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise ApiError(
                f"Risk register request failed ({response.status_code}) for {normalized_path}. "
                "Please verify the request and try again."
            ) from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise ApiError(
                f"Invalid response from risk register for {normalized_path}. Expected JSON data."
            ) from exc

        if isinstance(body, dict) and "success" in body:
            if not body.get("success"):
                raise ApiError(str(body.get("error") or "Risk register reported a failure."))
            return body.get("data")
        return body


def _error_text(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, dict):
        return str(body.get("error") or "")
    return ""
