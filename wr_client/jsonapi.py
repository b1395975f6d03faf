"""Translate JSON:API documents into the remote object model."""

from __future__ import annotations

from typing import Any, Mapping

from wr_client.models import OrganizationCapacity, Page, QueueItem, Run, Workspace
from wr_common.errors import RemoteServiceError


def _attributes(resource: Mapping[str, Any]) -> Mapping[str, Any]:
    attrs = resource.get("attributes")
    return attrs if isinstance(attrs, Mapping) else {}


def _relationship_id(resource: Mapping[str, Any], name: str) -> str | None:
    relationships = resource.get("relationships")
    if not isinstance(relationships, Mapping):
        return None
    rel = relationships.get(name)
    if not isinstance(rel, Mapping):
        return None
    data = rel.get("data")
    if isinstance(data, Mapping) and data.get("id") is not None:
        return str(data["id"])
    return None


def _require_resource(document: Mapping[str, Any] | None, kind: str) -> Mapping[str, Any]:
    data = document.get("data") if isinstance(document, Mapping) else None
    if not isinstance(data, Mapping) or not data.get("id"):
        raise RemoteServiceError(f"Malformed {kind} response: missing data.id")
    return data


def _require_list(document: Mapping[str, Any] | None, kind: str) -> list[Mapping[str, Any]]:
    data = document.get("data") if isinstance(document, Mapping) else None
    if not isinstance(data, list):
        raise RemoteServiceError(f"Malformed {kind} response: data is not a list")
    return [item for item in data if isinstance(item, Mapping)]


def run_from_resource(resource: Mapping[str, Any]) -> Run:
    attrs = _attributes(resource)
    actions = attrs.get("actions") if isinstance(attrs.get("actions"), Mapping) else {}
    status = attrs.get("status")
    if not status:
        raise RemoteServiceError(
            "Malformed run resource: missing status", context={"run_id": resource.get("id")}
        )
    return Run(
        id=str(resource["id"]),
        status=str(status),
        workspace_id=_relationship_id(resource, "workspace"),
        is_destroy=bool(attrs.get("is-destroy", False)),
        auto_apply=bool(attrs.get("auto-apply", False)),
        has_changes=bool(attrs.get("has-changes", True)),
        allow_empty_apply=bool(attrs.get("allow-empty-apply", False)),
        is_confirmable=bool(actions.get("is-confirmable", False)),
        message=attrs.get("message"),
    )


def parse_run(document: Mapping[str, Any] | None) -> Run:
    return run_from_resource(_require_resource(document, "run"))


def parse_workspace(document: Mapping[str, Any] | None) -> Workspace:
    resource = _require_resource(document, "workspace")
    attrs = _attributes(resource)
    return Workspace(
        id=str(resource["id"]),
        name=str(attrs.get("name") or ""),
        organization=_relationship_id(resource, "organization"),
        locked=bool(attrs.get("locked", False)),
        current_run_id=_relationship_id(resource, "current-run"),
    )


def parse_capacity(document: Mapping[str, Any] | None, organization: str) -> OrganizationCapacity:
    data = document.get("data") if isinstance(document, Mapping) else None
    attrs = _attributes(data) if isinstance(data, Mapping) else {}
    return OrganizationCapacity(
        organization=organization,
        pending=int(attrs.get("pending") or 0),
        running=int(attrs.get("running") or 0),
    )


def parse_pagination(document: Mapping[str, Any] | None) -> tuple[int, int, int | None]:
    """Return ``(current_page, total_pages, next_page)``; single page when absent."""
    meta = document.get("meta") if isinstance(document, Mapping) else None
    pagination = meta.get("pagination") if isinstance(meta, Mapping) else None
    if not isinstance(pagination, Mapping):
        return 1, 1, None
    current = int(pagination.get("current-page") or 1)
    total = int(pagination.get("total-pages") or 1)
    next_page = pagination.get("next-page")
    return current, total, int(next_page) if next_page is not None else None


def parse_run_page(document: Mapping[str, Any] | None) -> Page[Run]:
    items = [run_from_resource(item) for item in _require_list(document, "run list")]
    current, total, next_page = parse_pagination(document)
    return Page(items=items, current_page=current, total_pages=total, next_page=next_page)


def parse_queue_page(document: Mapping[str, Any] | None) -> Page[QueueItem]:
    items = []
    for resource in _require_list(document, "run queue"):
        attrs = _attributes(resource)
        items.append(
            QueueItem(
                id=str(resource.get("id")),
                status=str(attrs.get("status") or ""),
                position_in_queue=int(attrs.get("position-in-queue") or 0),
            )
        )
    current, total, next_page = parse_pagination(document)
    return Page(items=items, current_page=current, total_pages=total, next_page=next_page)
