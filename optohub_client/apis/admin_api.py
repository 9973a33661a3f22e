from __future__ import annotations

from typing import Any

from optohub_client.errors import OptoHubError
from optohub_client.http import HttpClient


class AdminApi:
    def __init__(self, http_client: HttpClient):
        self._http_client = http_client

    def login(self, username: str, password: str) -> dict[str, Any]:
        username = username.strip()
        if not username or not password:
            raise ValueError("Username and password are required")

        response = self._http_client.request(
            "/admin/login",
            method="POST",
            json_body={"username": username, "password": password},
        )
        token = str(response.get("token", "")).strip() if isinstance(response, dict) else ""
        if not token:
            raise OptoHubError("Login response did not include a token")

        user = response.get("user")
        display_name = user.get("username") if isinstance(user, dict) else None
        self._http_client.token_store.set(token, display_name or username)
        return response

    def logout(self) -> None:
        try:
            self._http_client.request("/admin/logout", method="POST")
        finally:
            self._http_client.token_store.clear()

    def get_profile(self) -> dict[str, Any]:
        return self._http_client.request("/admin/profile")

    def update_profile(self, profile: dict[str, Any]) -> dict[str, Any]:
        return self._http_client.request("/admin/profile", method="PUT", json_body=profile)

    def get_dashboard(self) -> dict[str, Any]:
        return self._http_client.request("/admin/dashboard")

    def get_settings(self) -> dict[str, Any]:
        return self._http_client.request("/admin/settings")

    def update_settings(self, settings: dict[str, Any]) -> dict[str, Any]:
        return self._http_client.request("/admin/settings", method="PUT", json_body=settings)
