"""Interface for presenting command results to the user.

Keeps the CLI commands independent of how output is rendered.
"""

import abc
from typing import Any


class UserInterface(abc.ABC):
    """Abstract Base Class for user-facing output."""

    @abc.abstractmethod
    def display_json(self, data: Any, **kwargs: Any) -> None:
        """Displays structured data (a query result, server info, ...).

        Args:
            data: Any JSON-serializable value.
            **kwargs: Additional arguments for formatting (e.g., title).
        """
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user."""
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass
