"""Filter values, displayed filters and default-filter reconciliation."""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import Any

from relpage.keys import same_value

logger = logging.getLogger(__name__)


def _is_empty(value: Any) -> bool:
    if value is None or value == "":
        return True
    if isinstance(value, (Mapping, list, tuple, set, frozenset)):
        return len(value) == 0
    return False


def remove_empty(values: Mapping[str, Any]) -> dict[str, Any]:
    """Drop None, empty strings and empty containers, recursively.

    Nested mappings that end up empty are dropped as well.
    """
    result: dict[str, Any] = {}
    for name, value in values.items():
        if isinstance(value, Mapping):
            value = remove_empty(value)
        if _is_empty(value):
            continue
        result[name] = value
    return result


class FilterState:
    """Live filter values plus the set of filters shown to the user.

    ``sync_default`` is the reconciliation step: it compares the caller's
    default filter with the last one observed, by content, and resets the
    live values when it changed.
    """

    def __init__(self, default: Mapping[str, Any] | None = None) -> None:
        self._default: dict[str, Any] = copy.deepcopy(dict(default or {}))
        self.values: dict[str, Any] = copy.deepcopy(self._default)
        self.displayed: dict[str, bool] = {}

    @property
    def default(self) -> dict[str, Any]:
        return copy.deepcopy(self._default)

    def sync_default(self, default: Mapping[str, Any] | None) -> bool:
        """Reset live values if ``default`` differs from the last observed one.

        Returns True when the live values were overwritten.
        """
        incoming = dict(default or {})
        if same_value(incoming, self._default):
            return False
        logger.debug("Default filter changed to %r", incoming)
        self._default = copy.deepcopy(incoming)
        self.values = copy.deepcopy(incoming)
        return True

    def commit(
        self, values: Mapping[str, Any], displayed: Mapping[str, bool] | None
    ) -> None:
        self.values = remove_empty(values)
        self.displayed = dict(displayed or {})

    def show(self, name: str, default_value: Any = None) -> None:
        self.displayed = {**self.displayed, name: True}
        self.values = {**self.values, name: default_value}

    def hide(self, name: str) -> None:
        self.displayed = {k: v for k, v in self.displayed.items() if k != name}
        self.values = {k: v for k, v in self.values.items() if k != name}


__all__ = ["FilterState", "remove_empty"]
