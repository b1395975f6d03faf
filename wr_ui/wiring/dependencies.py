from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from wr_client.api import ClientSettings, RemoteRunService, TFEClient
from wr_controller.api import ControllerOptions, PollSettings, RunController
from wr_ui.ui.console import ConsoleUI


@dataclass
class UIContext:
    """Container for CLI services, initialized lazily."""

    hostname: Optional[str] = None

    # Lazily initialized services
    _ui: Optional[ConsoleUI] = None
    _service: Optional[RemoteRunService] = None
    _poll_settings: Optional[PollSettings] = None

    @property
    def ui(self) -> ConsoleUI:
        if self._ui is None:
            self._ui = ConsoleUI()
        return self._ui

    @ui.setter
    def ui(self, value: ConsoleUI):
        self._ui = value

    @property
    def service(self) -> RemoteRunService:
        if self._service is None:
            self._service = TFEClient(ClientSettings.from_env(hostname=self.hostname))
        return self._service

    @service.setter
    def service(self, value: RemoteRunService):
        self._service = value

    @property
    def poll_settings(self) -> PollSettings:
        if self._poll_settings is None:
            self._poll_settings = PollSettings.from_env()
        return self._poll_settings

    @poll_settings.setter
    def poll_settings(self, value: PollSettings):
        self._poll_settings = value

    def build_controller(self) -> RunController:
        options = ControllerOptions(
            poll_settings=self.poll_settings,
            progress_callback=self.ui.show_progress,
        )
        return RunController(self.service, options)


__all__ = ["UIContext"]
