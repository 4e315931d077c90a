"""Base Webserver logic for an HTTPServer with a fixed set of routes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from aiohttp import web

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable, Iterable

MAX_CLIENT_SIZE: Final = 1024**2 * 16
MAX_LINE_SIZE: Final = 24570


class Webserver:
    """Base Webserver logic for an HTTPServer with a fixed set of routes."""

    def __init__(self, logger: logging.Logger) -> None:
        """Initialize instance."""
        self.logger = logger
        # the below gets initialized in async setup
        self._apprunner: web.AppRunner | None = None
        self._webapp: web.Application | None = None
        self._tcp_site: web.TCPSite | None = None
        self._base_url: str = ""
        self._bind_port: int | None = None

    def create_app(
        self,
        routes: Iterable[tuple[str, str, Callable[[web.Request], Awaitable[web.StreamResponse]]]],
        middlewares: Iterable[Callable] = (),
    ) -> web.Application:
        """Create the (aiohttp) application holding the given routes."""
        self._webapp = web.Application(
            logger=self.logger,
            client_max_size=MAX_CLIENT_SIZE,
            handler_args={
                "max_line_size": MAX_LINE_SIZE,
                "max_field_size": MAX_LINE_SIZE,
            },
            middlewares=list(middlewares),
        )
        for method, path, handler in routes:
            self._webapp.router.add_route(method, path, handler)
        return self._webapp

    async def setup(self, bind_ip: str | None, bind_port: int, base_url: str) -> None:
        """Start serving the (created) application."""
        assert self._webapp is not None, "Application not yet created"
        self._base_url = base_url[:-1] if base_url.endswith("/") else base_url
        self._bind_port = bind_port
        self.logger.info("Starting server on  %s:%s - base url: %s", bind_ip, bind_port, base_url)
        self._apprunner = web.AppRunner(self._webapp, access_log=None, shutdown_timeout=10)
        await self._apprunner.setup()
        # set host to None to bind to all addresses on both IPv4 and IPv6
        host = None if bind_ip == "0.0.0.0" else bind_ip
        try:
            self._tcp_site = web.TCPSite(self._apprunner, host=host, port=bind_port)
            await self._tcp_site.start()
        except OSError:
            if host is None:
                raise
            # the configured interface is not available, retry on all interfaces
            self.logger.error(
                "Could not bind to %s, will start on all interfaces as fallback!", host
            )
            self._tcp_site = web.TCPSite(self._apprunner, host=None, port=bind_port)
            await self._tcp_site.start()

    async def close(self) -> None:
        """Cleanup on exit."""
        if self._tcp_site is None:
            # the application was never served
            return
        await self._tcp_site.stop()
        await self._apprunner.cleanup()
        await self._webapp.shutdown()
        await self._webapp.cleanup()
        self._tcp_site = None

    @property
    def base_url(self) -> str:
        """Return the base URL of this webserver."""
        return self._base_url

    @property
    def port(self) -> int | None:
        """Return the port of this webserver."""
        return self._bind_port
