"""
Client edit view.

Drives the same calls as the browser form: load one client, edit its name and
code, save with a full update, or delete after confirmation. Rendering is kept
to plain text; navigation and confirmation are injected callbacks.
"""

from __future__ import annotations

import enum
import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional

import httpx

logger = logging.getLogger("erp.ui")

FILES_ROUTE = "/files"
CONFIRM_DELETE_PROMPT = "Are you sure you want to delete this client?"
UPDATED_MESSAGE = "Client updated successfully!"

FORM_FIELDS = ("name", "code")


class ViewState(str, enum.Enum):
    loading = "loading"
    ready = "ready"
    submitting = "submitting"
    success = "success"
    error = "error"


def _server_message(response: Optional[httpx.Response], fallback: str) -> str:
    """The envelope's `message` verbatim, or the fallback."""
    if response is None:
        return fallback
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return fallback


class EditClientView:
    def __init__(
        self,
        http: httpx.Client,
        client_id: int,
        token_store: Mapping[str, Any],
        navigate: Callable[[str], None],
        confirm: Callable[[str], bool],
        api_prefix: str = "/api",
        redirect_delay: float = 1.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.http = http
        self.client_id = client_id
        self.token_store = token_store
        self.navigate = navigate
        self.confirm = confirm
        self.api_prefix = api_prefix.rstrip("/")
        self.redirect_delay = redirect_delay
        self._sleep = sleep

        self.state = ViewState.loading
        self.form: Dict[str, str] = {"name": "", "code": ""}
        self.error = ""
        self.success = ""

    @property
    def url(self) -> str:
        return f"{self.api_prefix}/clients/{self.client_id}"

    @property
    def submit_disabled(self) -> bool:
        return self.state in (ViewState.loading, ViewState.submitting)

    def _headers(self) -> Dict[str, str]:
        token = self.token_store.get("token")
        return {"Authorization": f"Bearer {token}"}

    def _send(self, method: str, **kwargs) -> httpx.Response:
        """Send one request; non-2xx and transport failures raise httpx errors."""
        response = self.http.request(method, self.url, headers=self._headers(), **kwargs)
        response.raise_for_status()
        return response

    def _fail(self, exc: httpx.HTTPError, fallback: str) -> None:
        response = exc.response if isinstance(exc, httpx.HTTPStatusError) else None
        self.error = _server_message(response, fallback)
        self.state = ViewState.error
        logger.warning("client %s: %s", self.client_id, self.error)

    def load(self) -> None:
        self.state = ViewState.loading
        self.error = ""
        try:
            data = self._send("GET").json().get("data") or {}
        except httpx.HTTPError as exc:
            self._fail(exc, "Failed to fetch client")
            return
        self.form = {f: str(data.get(f) or "") for f in FORM_FIELDS}
        self.state = ViewState.ready

    def change(self, field: str, value: str) -> None:
        if field not in FORM_FIELDS:
            raise KeyError(field)
        self.form[field] = value

    def submit(self) -> bool:
        """Save the form. Returns True when the update went through."""
        if self.submit_disabled:
            return False
        self.state = ViewState.submitting
        self.error = ""
        self.success = ""
        try:
            self._send("PUT", json=dict(self.form))
        except httpx.HTTPError as exc:
            self._fail(exc, "Failed to update client")
            return False

        self.success = UPDATED_MESSAGE
        self.state = ViewState.success
        if self.redirect_delay > 0:
            self._sleep(self.redirect_delay)
        self.navigate(FILES_ROUTE)
        return True

    def delete(self) -> bool:
        """Delete after confirmation. Returns True when the client was deleted."""
        if not self.confirm(CONFIRM_DELETE_PROMPT):
            return False
        try:
            self._send("DELETE")
        except httpx.HTTPError as exc:
            self._fail(exc, "Failed to delete client")
            return False
        self.navigate(FILES_ROUTE)
        return True

    def cancel(self) -> None:
        self.navigate(FILES_ROUTE)

    def render(self) -> str:
        if self.state == ViewState.loading:
            return "Loading client data..."
        if self.state == ViewState.error:
            return self.error

        lines = ["Edit Client"]
        if self.success:
            lines.append(self.success)
        lines.append(f"Client Name *: {self.form['name']}")
        lines.append(f"Client Code *: {self.form['code']}")
        save = "Saving..." if self.state == ViewState.submitting else "Save Changes"
        lines.append(f"[Delete Client] [Cancel] [{save}]")
        return "\n".join(lines)
