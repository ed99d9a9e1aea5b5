"""Execution queue, retry policy and broker interface."""

from commodity_core.execution.broker import Broker
from commodity_core.execution.queue import ExecutionQueue, enqueue_for_signal
from commodity_core.execution.retry import RetryPolicy
from commodity_core.execution.supervisor import reap_orphans

__all__ = ["Broker", "ExecutionQueue", "RetryPolicy", "enqueue_for_signal", "reap_orphans"]
