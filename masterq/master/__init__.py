"""Master directory queries."""

from __future__ import annotations

from masterq.master.fetcher import BatchFetcher, FetchState, RetryState
from masterq.master.server import MasterServer, split_host_port

__all__ = [
    "BatchFetcher",
    "FetchState",
    "MasterServer",
    "RetryState",
    "split_host_port",
]
