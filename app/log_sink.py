"""Client for the external log sink.

Events are posted as ``{"stack", "level", "package", "message"}``. Delivery
is best effort: any failure is logged locally and ``send`` returns ``None``,
so a caller can never be failed by the sink.
"""

import logging

import httpx
from fastapi import Request

STACKS = {"backend", "frontend"}
LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
}

logger = logging.getLogger("shortlinks.log_sink")


class LogSink:
    def __init__(self, url: str = "", timeout: float = 5.0, transport: httpx.AsyncBaseTransport | None = None):
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def send(self, stack: str, level: str, package: str, message: str) -> dict | None:
        logger.log(LEVELS.get(level, logging.INFO), "[%s/%s] %s", stack, package, message)
        if not self.url:
            return None
        if stack not in STACKS or level not in LEVELS:
            logger.warning("Not forwarding log event with stack=%r level=%r", stack, level)
            return None

        payload = {"stack": stack, "level": level, "package": package, "message": message}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, json=payload)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            logger.warning("Log sink request failed: %s", exc)
            return None
        if not isinstance(data, dict):
            logger.warning("Log sink returned unexpected body: %r", data)
            return None

        logger.debug("Log sent. ID: %s", data.get("logID"))
        return data


def get_log_sink(request: Request) -> LogSink:
    return request.app.state.log_sink
