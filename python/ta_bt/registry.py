"""Named strategy builders.

The registry is an ordinary object owned by the caller; nothing is registered
at import time. Populate it once at start-up, e.g. with
``strategies.register_default_strategies(registry)``.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List

from .series import BarSeries
from .strategy import Strategy

logger = logging.getLogger(__name__)

StrategyBuilder = Callable[..., Strategy]


class StrategyRegistry:
    def __init__(self):
        self._builders: Dict[str, StrategyBuilder] = {}

    def register(self, name: str, builder: StrategyBuilder, replace: bool = False) -> None:
        if not name:
            raise ValueError("Strategy name cannot be empty")
        if builder is None:
            raise ValueError("Builder cannot be None")
        if name in self._builders and not replace:
            raise ValueError(f"Strategy {name!r} is already registered")
        self._builders[name] = builder
        logger.debug("Registered strategy %r", name)

    def build(self, name: str, series: BarSeries, **params) -> Strategy:
        """Build strategy ``name`` on ``series``; ``params`` go to the builder."""
        try:
            builder = self._builders[name]
        except KeyError:
            raise KeyError(f"Unknown strategy {name!r}; registered: {self.names()}") from None
        return builder(series, **params)

    def names(self) -> List[str]:
        return sorted(self._builders)

    def __contains__(self, name: str) -> bool:
        return name in self._builders

    def __len__(self) -> int:
        return len(self._builders)
