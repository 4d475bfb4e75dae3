"""HTTP client for the ShareHub API with explicit session state."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

import requests

# purpose: give scripts and front-ends one state object with defined invalidation
# status: active

BASE_URL = os.getenv("SHAREHUB_URL", "http://localhost:8000")

STATE_KEYS = ("user", "files", "messages")


class ShareHubAPIError(RuntimeError):
    def __init__(self, status_code: int, detail: str):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


@dataclass
class ClientState:
    """Session data held by a client.

    Populated by fetches, cleared on logout. ``invalidate`` drops cached
    entries and notifies listeners registered with ``on_invalidate``.
    """

    token: str | None = None
    user: dict | None = None
    files: list[dict] | None = None
    messages: list[dict] | None = None
    _listeners: list[Callable[[str], None]] = field(default_factory=list, repr=False)

    def on_invalidate(self, callback: Callable[[str], None]) -> None:
        self._listeners.append(callback)

    def invalidate(self, *keys: str) -> None:
        for key in keys or STATE_KEYS:
            if key not in STATE_KEYS:
                raise ValueError(f"unknown state key {key!r}")
            setattr(self, key, None)
            for callback in self._listeners:
                callback(key)

    def clear(self) -> None:
        self.token = None
        self.invalidate()

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None


class ShareHubClient:
    def __init__(self, base_url: str = BASE_URL, session: Any = None, state: ClientState | None = None):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.state = state or ClientState()

    def _request(self, method: str, endpoint: str, **kwargs) -> dict:
        headers = dict(kwargs.pop("headers", None) or {})
        if self.state.token:
            headers["Authorization"] = f"Bearer {self.state.token}"
        resp = self.session.request(method, f"{self.base_url}/api{endpoint}", headers=headers, **kwargs)
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code >= 400:
            detail = data.get("detail") if isinstance(data, dict) else None
            raise ShareHubAPIError(resp.status_code, str(detail or "Request failed"))
        return data

    def _authenticate(self, endpoint: str, payload: dict) -> dict:
        data = self._request("POST", endpoint, json=payload)
        self.state.invalidate()
        self.state.token = data["access_token"]
        self.state.user = data["user"]
        return data

    def register(self, email: str, username: str, password: str) -> dict:
        return self._authenticate("/auth/register", {"email": email, "username": username, "password": password})

    def login(self, username: str, password: str) -> dict:
        return self._authenticate("/auth/login", {"username": username, "password": password})

    def logout(self) -> None:
        self.state.clear()

    def me(self) -> dict:
        self.state.user = self._request("GET", "/auth/me")
        return self.state.user

    def list_files(self) -> list[dict]:
        self.state.files = self._request("GET", "/files")["files"]
        return self.state.files

    def upload_files(self, files: Iterable[tuple[str, bytes, str]], is_public: bool = True) -> dict:
        parts = [("files", (name, content, mime)) for name, content, mime in files]
        data = self._request("POST", "/files/upload", files=parts, data={"is_public": str(is_public).lower()})
        self.state.invalidate("files")
        return data

    def download_link(self, file_id: str) -> dict:
        return self._request("GET", f"/files/{file_id}/download")

    def delete_file(self, file_id: str) -> dict:
        data = self._request("DELETE", f"/files/{file_id}")
        self.state.invalidate("files")
        return data

    def list_messages(self) -> list[dict]:
        self.state.messages = self._request("GET", "/chat/messages")["messages"]
        return self.state.messages

    def send_message(self, message: str) -> dict:
        data = self._request("POST", "/chat/messages", json={"message": message})
        self.state.invalidate("messages")
        return data["message"]

    def delete_message(self, message_id: str) -> dict:
        data = self._request("DELETE", f"/chat/messages/{message_id}")
        self.state.invalidate("messages")
        return data

    def admin_stats(self) -> dict:
        return self._request("GET", "/admin/stats")

    def list_users(self) -> list[dict]:
        return self._request("GET", "/admin/users")["users"]

    def set_admin(self, user_id: str, is_admin: bool) -> dict:
        return self._request("PATCH", f"/admin/users/{user_id}/admin", json={"isAdmin": is_admin})["user"]

    def delete_user(self, user_id: str) -> dict:
        data = self._request("DELETE", f"/admin/users/{user_id}")
        self.state.invalidate("files", "messages")
        return data
