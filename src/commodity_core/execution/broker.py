"""Broker collaborator interface for live executions."""

from __future__ import annotations

from abc import ABC, abstractmethod

from commodity_core.models import BrokerOrder, BrokerResult


class Broker(ABC):
    """Places a validated order with a real broker.

    Implementations return ``BrokerResult(success=False, error=...)`` for
    rejections. Raised exceptions are also recorded verbatim on the queue
    item, so neither path needs wrapping.
    """

    @abstractmethod
    def execute(self, order: BrokerOrder) -> BrokerResult: ...
