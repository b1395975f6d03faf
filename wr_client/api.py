"""Public API surface for wr_client."""

from wr_client.http_client import TFEClient
from wr_client.models import (
    OrganizationCapacity,
    Page,
    QueueItem,
    Run,
    RunStatus,
    StatusValue,
    Workspace,
)
from wr_client.service import RemoteRunService, RetryWaiter
from wr_client.settings import ClientSettings

__all__ = [
    "ClientSettings",
    "OrganizationCapacity",
    "Page",
    "QueueItem",
    "RemoteRunService",
    "RetryWaiter",
    "Run",
    "RunStatus",
    "StatusValue",
    "TFEClient",
    "Workspace",
]
