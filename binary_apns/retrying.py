import asyncio
import logging

from .client import ApnsClient
from .errors import TransportError

logger = logging.getLogger(__name__)


class RetryingProxy:
    def __init__(self, client: ApnsClient, *, attempts=3, resend_timeout=0.5):
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.client = client
        self.attempts = attempts
        self.resend_timeout = resend_timeout

    def __getattr__(self, item):
        return getattr(self.client, item)

    async def send(self, notification):
        return await self.send_all([notification])

    async def send_all(self, notifications):
        pending = list(notifications)
        rejections = []
        resend_timeout = self.resend_timeout
        for attempt in range(1, self.attempts + 1):
            try:
                return rejections + await self.client.send_all(pending)
            except TransportError as exc:
                # only resend what the gateway has not taken yet
                rejections.extend(exc.rejections)
                if exc.undelivered is not None:
                    pending = list(exc.undelivered)
                if attempt == self.attempts:
                    exc.rejections = rejections
                    exc.undelivered = pending
                    raise
                logger.warning("Attempt %d/%d failed: %s, retrying in %.1fs",
                               attempt, self.attempts, exc, resend_timeout)
                await asyncio.sleep(resend_timeout)
                resend_timeout *= 2


__all__ = ["RetryingProxy"]
