"""Remote control plane client: object model, service protocol and HTTP transport."""

from wr_client.api import (
    ClientSettings,
    OrganizationCapacity,
    Page,
    QueueItem,
    RemoteRunService,
    Run,
    RunStatus,
    StatusValue,
    TFEClient,
    Workspace,
)

__all__ = [
    "ClientSettings",
    "OrganizationCapacity",
    "Page",
    "QueueItem",
    "RemoteRunService",
    "Run",
    "RunStatus",
    "StatusValue",
    "TFEClient",
    "Workspace",
]
