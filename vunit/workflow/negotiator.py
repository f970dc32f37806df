"""This module contains the gas negotiation primitive.

A workflow that needs a human-chosen gas value opens a request, announces it,
and waits on it. The value arrives later through an unrelated command. The
wait is an asyncio future, so the event loop keeps running other work while
the request is outstanding.
"""
import asyncio
import itertools
import logging

from typing import Optional

from vunit.exceptions import GasRequestCancelled, RequestAlreadyPending

log = logging.getLogger(__name__)

_request_ids = itertools.count(1)


class GasRequest:
    """Handle of one outstanding gas request."""

    def __init__(self, future: "asyncio.Future[str]") -> None:
        self.id = next(_request_ids)
        self.future = future

    @property
    def settled(self) -> bool:
        return self.future.done()

    def __repr__(self) -> str:
        return "<GasRequest {} settled={}>".format(self.id, self.settled)


class GasNegotiator:
    """Holds at most one outstanding gas request."""

    def __init__(self, name: str = "gas") -> None:
        self.name = name
        self._request = None  # type: Optional[GasRequest]

    @property
    def pending(self) -> Optional[GasRequest]:
        """

        :return: the outstanding request, if any
        """
        if self._request is not None and not self._request.settled:
            return self._request
        return None

    def request_gas(self) -> GasRequest:
        """Open a new request.

        :return: the request handle
        """
        if self.pending is not None:
            raise RequestAlreadyPending(
                "{} negotiator already has request {} pending".format(
                    self.name, self._request.id
                )
            )
        loop = asyncio.get_running_loop()
        self._request = GasRequest(loop.create_future())
        log.debug("%s negotiator opened request %d", self.name, self._request.id)
        return self._request

    async def wait(self, request: GasRequest) -> str:
        """Suspend until the request is supplied or cancelled.

        :param request:
        :return: the supplied value
        """
        try:
            # the request outlives a cancelled waiter
            return await asyncio.shield(request.future)
        except asyncio.CancelledError:
            if request.future.cancelled():
                raise GasRequestCancelled(
                    "{} request {} was cancelled".format(self.name, request.id)
                )
            raise
        finally:
            if self._request is request and request.settled:
                self._request = None

    def supply(self, request: GasRequest, value: str) -> bool:
        """Resolve a request. Stale, unknown and already resolved requests are
        ignored.

        :param request:
        :param value:
        :return: whether the value was delivered
        """
        if request is None or request is not self._request or request.settled:
            log.debug("%s negotiator ignored value for stale request", self.name)
            return False
        request.future.set_result(value)
        log.debug("%s negotiator resolved request %d", self.name, request.id)
        return True

    def cancel(self, request: GasRequest = None) -> bool:
        """Release a request without resolving it.

        :param request: defaults to the outstanding request
        :return: whether a request was cancelled
        """
        request = request or self._request
        if request is None or request is not self._request or request.settled:
            return False
        request.future.cancel()
        self._request = None
        log.debug("%s negotiator cancelled request %d", self.name, request.id)
        return True
