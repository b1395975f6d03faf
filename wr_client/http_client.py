"""HTTP client for the control plane's JSON:API run endpoints."""

from __future__ import annotations

import http.client
import json
import logging
import ssl
import time
from dataclasses import dataclass, field
from typing import Any, Mapping
from urllib import error, parse, request

from wr_client import jsonapi
from wr_client.models import OrganizationCapacity, Page, QueueItem, Run, Workspace
from wr_client.service import RetryWaiter
from wr_client.settings import ClientSettings
from wr_common.errors import RemoteNotFoundError, RemoteServiceError

logger = logging.getLogger(__name__)

JSONAPI_MEDIA_TYPE = "application/vnd.api+json"
_RETRYABLE_STATUSES = {429}


def _is_retryable(status: int) -> bool:
    return status in _RETRYABLE_STATUSES or status >= 500


@dataclass
class TFEClient:
    """Remote Run Service implementation backed by urllib with retry support."""

    settings: ClientSettings
    user_agent: str = "workspace-run-lib"
    cancel: RetryWaiter | None = field(default=None, repr=False)
    _ssl_context: ssl.SSLContext | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.settings.ssl_skip_verify:
            context = ssl.create_default_context()
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
            self._ssl_context = context

    # Runs ---------------------------------------------------------------

    def create_run(
        self,
        workspace: Workspace,
        *,
        is_destroy: bool,
        auto_apply: bool,
        message: str,
    ) -> Run:
        payload = {
            "data": {
                "type": "runs",
                "attributes": {
                    "is-destroy": is_destroy,
                    "auto-apply": auto_apply,
                    "message": message,
                },
                "relationships": {
                    "workspace": {"data": {"type": "workspaces", "id": workspace.id}}
                },
            }
        }
        _, data = self._request("POST", "/runs", payload=payload, expected_statuses={201})
        return jsonapi.parse_run(data)

    def read_run(self, run_id: str) -> Run:
        _, data = self._request("GET", f"/runs/{parse.quote(run_id, safe='')}")
        return jsonapi.parse_run(data)

    def apply_run(self, run_id: str, comment: str) -> None:
        self._request(
            "POST",
            f"/runs/{parse.quote(run_id, safe='')}/actions/apply",
            payload={"comment": comment},
            expected_statuses={202},
        )

    def list_runs(self, workspace_id: str, page: int | None = None) -> Page[Run]:
        _, data = self._request(
            "GET",
            f"/workspaces/{parse.quote(workspace_id, safe='')}/runs",
            query=self._page_query(page),
        )
        return jsonapi.parse_run_page(data)

    # Workspaces ---------------------------------------------------------

    def read_workspace(self, organization: str, name: str) -> Workspace:
        _, data = self._request(
            "GET",
            f"/organizations/{parse.quote(organization, safe='')}"
            f"/workspaces/{parse.quote(name, safe='')}",
        )
        return jsonapi.parse_workspace(data)

    def read_workspace_by_id(self, workspace_id: str) -> Workspace:
        _, data = self._request("GET", f"/workspaces/{parse.quote(workspace_id, safe='')}")
        return jsonapi.parse_workspace(data)

    # Organizations ------------------------------------------------------

    def list_organization_run_queue(
        self, organization: str, page: int | None = None
    ) -> Page[QueueItem]:
        _, data = self._request(
            "GET",
            f"/organizations/{parse.quote(organization, safe='')}/runs/queue",
            query=self._page_query(page),
        )
        return jsonapi.parse_queue_page(data)

    def read_organization_capacity(self, organization: str) -> OrganizationCapacity:
        _, data = self._request(
            "GET", f"/organizations/{parse.quote(organization, safe='')}/capacity"
        )
        return jsonapi.parse_capacity(data, organization)

    # Transport ----------------------------------------------------------

    @staticmethod
    def _page_query(page: int | None) -> dict[str, str] | None:
        if page is None:
            return None
        return {"page[number]": str(page)}

    def _build_url(self, path: str, query: Mapping[str, str] | None) -> str:
        url = f"{self.settings.base_url}{path}"
        if query:
            url = f"{url}?{parse.urlencode(query)}"
        return url

    def _request(
        self,
        method: str,
        path: str,
        payload: Mapping[str, Any] | None = None,
        query: Mapping[str, str] | None = None,
        expected_statuses: set[int] | None = None,
    ) -> tuple[int, dict[str, Any] | None]:
        expected = expected_statuses or {200}
        url = self._build_url(path, query)
        headers = {
            "Accept": JSONAPI_MEDIA_TYPE,
            "Authorization": f"Bearer {self.settings.token}",
            "User-Agent": self.user_agent,
        }
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = JSONAPI_MEDIA_TYPE

        context = {"method": method, "path": path}
        max_retries = self.settings.max_retries
        for attempt in range(max_retries + 1):
            failure: Exception | None = None
            try:
                req = request.Request(url, data=data, headers=headers, method=method)
                with request.urlopen(  # nosec B310
                    req, timeout=self.settings.timeout_seconds, context=self._ssl_context
                ) as resp:
                    status = resp.status
                    raw = resp.read()
            except error.HTTPError as exc:
                status = exc.code
                raw = self._read_error_body(exc)
                failure = exc
            except (OSError, http.client.HTTPException) as exc:
                # URLError, socket timeouts and dropped connections.
                if attempt < max_retries:
                    logger.debug("Retrying %s %s after network error: %s", method, path, exc)
                    self._sleep_backoff(attempt, context)
                    continue
                raise RemoteServiceError(
                    f"Request failed for {method} {path}: {exc}", context=context, cause=exc
                ) from exc

            if status in expected:
                return status, self._parse_json(self._decode_body(raw, context))
            body = raw.decode("utf-8", errors="replace")
            if _is_retryable(status) and attempt < max_retries:
                logger.debug("Retrying %s %s after HTTP %s", method, path, status)
                self._sleep_backoff(attempt, context)
                continue
            error_cls = RemoteNotFoundError if status == 404 else RemoteServiceError
            message = (
                f"Resource not found: {method} {path}"
                if status == 404
                else f"API error {status} for {method} {path}: {body[:200]}"
            )
            raise error_cls(message, status_code=status, context=context, cause=failure)
        raise RemoteServiceError(f"Request failed after retries: {method} {path}", context=context)

    @staticmethod
    def _read_error_body(exc: error.HTTPError) -> bytes:
        if not exc.fp:
            return b""
        try:
            return exc.read()
        except (OSError, http.client.HTTPException) as read_exc:
            logger.debug("Unable to read error body for HTTP %s: %s", exc.code, read_exc)
            return b""

    @staticmethod
    def _decode_body(raw: bytes, context: Mapping[str, Any]) -> str:
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise RemoteServiceError(
                f"Response to {context['method']} {context['path']} is not valid UTF-8",
                context=context,
                cause=exc,
            ) from exc

    @staticmethod
    def _parse_json(body: str) -> dict[str, Any] | None:
        if not body:
            return None
        try:
            parsed = json.loads(body)
            return parsed if isinstance(parsed, dict) else None
        except json.JSONDecodeError:
            return None

    def bind_cancel(self, cancel: RetryWaiter | None) -> None:
        """Route retry waits through ``cancel`` until it is unbound with None."""
        self.cancel = cancel

    def _sleep_backoff(self, attempt: int, context: Mapping[str, Any]) -> None:
        delay = self.settings.backoff_base * (self.settings.backoff_factor ** attempt)
        if self.cancel is not None:
            self.cancel.sleep_or_raise(delay, phase="transport_retry", attempt=attempt + 1, **context)
        elif delay > 0:
            time.sleep(delay)
