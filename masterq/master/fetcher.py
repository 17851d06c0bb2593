"""Paginated fetch engine for the master server list.

The master server answers a server list request with one page of addresses
at a time. Each further page is requested with the last address of the
previous page as the seed, until a page ends with ``0.0.0.0:0``.

Lost datagrams are handled per page: a timeout first tries another resolved
address of the master host, which does not use up any of the page's retry
budget. Only when no alternate address is left does a resend count against
the budget. Once the budget is gone a strict fetch fails with
:class:`~masterq.utils.exceptions.QueryTimeoutError` and a lenient fetch
returns what it collected so far.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import Enum

from masterq.address import SENTINEL, Region, ServerAddress
from masterq.protocol.packets import BatchReply, BatchRequest, build_filter
from masterq.transport.base import MasterTransport
from masterq.utils.exceptions import InvalidArgumentError, QueryTimeoutError
from masterq.utils.logging_config import LoggingContext

logger = logging.getLogger(__name__)


class FetchState(Enum):
    """States of a server list fetch."""

    INIT = "init"
    AWAITING_REPLY = "awaiting_reply"
    ROTATE_OR_RETRY = "rotate_or_retry"
    PAGE_DONE = "page_done"
    FETCH_DONE = "fetch_done"
    FETCH_FAILED = "fetch_failed"


@dataclass(frozen=True)
class RetryState:
    """Send attempts made for the current seed.

    ``attempts`` counts the sends charged to the budget; resends that follow
    a successful address rotation are free.
    """

    attempts: int = 0
    limit: int = 3

    @property
    def exhausted(self) -> bool:
        """Whether no charged send is left for this seed."""
        return self.attempts >= self.limit

    def charge(self) -> RetryState:
        """Return the state after one more charged send."""
        return replace(self, attempts=self.attempts + 1)


def _validate_retries(retries: int) -> int:
    if isinstance(retries, bool) or not isinstance(retries, int) or retries < 1:
        msg = f"Retry limit must be a positive integer: {retries!r}"
        raise InvalidArgumentError(msg)
    return retries


class BatchFetcher:
    """Fetches the complete server list through a master transport."""

    def __init__(
        self,
        transport: MasterTransport,
        retries: int | None = None,
        timeout: float | None = None,
    ):
        """Initialize the fetcher.

        Args:
            transport: Connection to the master server
            retries: Charged sends per page; defaults to ``master.retries`` of
                the configuration active when a fetch starts
            timeout: Seconds to wait for each reply; defaults to ``master.timeout``

        """
        self.transport = transport
        self.retries = None if retries is None else _validate_retries(retries)
        if timeout is not None and timeout <= 0:
            msg = f"Timeout must be positive: {timeout!r}"
            raise InvalidArgumentError(msg)
        self.timeout = timeout

    def _settings(self) -> tuple[int, float]:
        """Snapshot retry limit and timeout for one fetch."""
        retries, timeout = self.retries, self.timeout
        if retries is None or timeout is None:
            from masterq.config import get_master_config

            master = get_master_config()
            retries = master.retries if retries is None else retries
            timeout = master.timeout if timeout is None else timeout
        return retries, timeout

    async def _exchange(self, request: BatchRequest, timeout: float) -> BatchReply | None:
        await self.transport.send(request.to_bytes())
        return await self.transport.receive(timeout)

    async def fetch_all(
        self,
        region: Region | int | str = Region.ALL,
        filter_: str | bytes | Mapping[str, str] = "",
        strict: bool = True,
    ) -> set[ServerAddress]:
        """Fetch every server address matching ``region`` and ``filter_``.

        Args:
            region: Region code or name
            filter_: Filter string, or a mapping rendered by :func:`build_filter`
            strict: Fail when a page cannot be fetched instead of returning
                the addresses collected so far

        Returns:
            Set of server addresses, never containing ``0.0.0.0:0``

        Raises:
            InvalidArgumentError: If region or filter are invalid (before any I/O)
            QueryTimeoutError: In strict mode, if a page never arrived
            ProtocolError: If a reply is malformed (in both modes)

        """
        limit, timeout = self._settings()
        state = FetchState.INIT
        result: set[ServerAddress] = set()
        request: BatchRequest | None = None
        reply: BatchReply | None = None
        retry = RetryState(limit=limit)
        pages = 0

        async with LoggingContext("server list fetch", region=str(region)):
            while state not in (FetchState.FETCH_DONE, FetchState.FETCH_FAILED):
                if state is FetchState.INIT:
                    request = BatchRequest(region, SENTINEL, build_filter(filter_))
                    retry = RetryState(limit=limit).charge()
                    state = FetchState.AWAITING_REPLY

                elif state is FetchState.AWAITING_REPLY:
                    reply = await self._exchange(request, timeout)
                    state = (
                        FetchState.ROTATE_OR_RETRY
                        if reply is None
                        else FetchState.PAGE_DONE
                    )

                elif state is FetchState.PAGE_DONE:
                    pages += 1
                    result.update(reply.servers)
                    logger.debug(
                        "Page %d from seed %s: %d addresses",
                        pages,
                        request.seed,
                        len(reply.servers),
                    )
                    if reply.is_final or not reply.addresses:
                        state = FetchState.FETCH_DONE
                    elif reply.last == request.seed:
                        # The cursor did not move, asking again would repeat this page
                        logger.warning(
                            "Master server repeated seed %s, ending fetch", request.seed
                        )
                        state = FetchState.FETCH_DONE
                    else:
                        request = replace(request, seed=reply.last)
                        retry = RetryState(limit=limit).charge()
                        state = FetchState.AWAITING_REPLY

                elif state is FetchState.ROTATE_OR_RETRY:
                    if self.transport.rotate_address():
                        logger.info(
                            "Request to master server timed out, retrying seed %s on another address",
                            request.seed,
                        )
                        state = FetchState.AWAITING_REPLY
                    elif not retry.exhausted:
                        retry = retry.charge()
                        logger.info(
                            "Request to master server timed out, retrying seed %s (%d/%d)",
                            request.seed,
                            retry.attempts,
                            retry.limit,
                        )
                        state = FetchState.AWAITING_REPLY
                    elif strict:
                        state = FetchState.FETCH_FAILED
                    else:
                        logger.warning(
                            "Giving up on seed %s after %d attempts, returning %d addresses",
                            request.seed,
                            retry.attempts,
                            len(result),
                        )
                        state = FetchState.FETCH_DONE

            if state is FetchState.FETCH_FAILED:
                msg = "Master server did not answer"
                raise QueryTimeoutError(
                    msg,
                    {"seed": str(request.seed), "attempts": retry.attempts},
                )

        logger.info("Fetched %d servers in %d pages", len(result), pages)
        return result
