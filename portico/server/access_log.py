"""Access logging for the listener runners."""

from __future__ import annotations

import logging

from aiohttp import web
from aiohttp.abc import AbstractAccessLogger


class QuietAccessLogger(AbstractAccessLogger):
    """Demotes WebSocket upgrades and HEAD probes to DEBUG."""

    def log(self, request: web.BaseRequest, response: web.StreamResponse, time: float) -> None:
        status = response.status
        if status == 101 or request.method == "HEAD":
            level = logging.DEBUG
        else:
            level = logging.INFO
        self.logger.log(
            level,
            "%s %s %s %s %.3fs",
            request.remote,
            request.method,
            request.path_qs,
            status,
            time,
        )
