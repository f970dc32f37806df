"""This module contains the interface of the presentation layer."""
from typing import Any, Dict

from vunit.bridge.views import ViewType


class Presenter:
    """Receives view snapshots and errors from the bridge."""

    def render(self, view: ViewType, snapshot: Dict[str, Any]) -> None:
        """

        :param view: the view the snapshot belongs to
        :param snapshot: the complete state of the view
        """
        raise NotImplementedError

    def report_error(self, error: Exception) -> None:
        raise NotImplementedError
