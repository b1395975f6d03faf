from wr_controller.models.controller_options import ControllerOptions
from wr_controller.models.request import RunOptions, RunRequest

__all__ = ["ControllerOptions", "RunOptions", "RunRequest"]
