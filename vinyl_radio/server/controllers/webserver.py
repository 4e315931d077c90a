"""Controller that manages the builtin webserver that hosts the (HTTP) api."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from aiohttp import web

from vinyl_radio.common.helpers.json import JSON_DECODE_EXCEPTIONS, json_dumps, json_loads
from vinyl_radio.common.models.api import (
    CommandMessage,
    CommandResultMessage,
    ControlCommand,
    ControlResult,
)
from vinyl_radio.common.models.enums import LikeAction
from vinyl_radio.common.models.errors import (
    InvalidCommand,
    InvalidDataError,
    NotFoundError,
    RadioError,
)
from vinyl_radio.common.models.playlist import PlaylistConfig
from vinyl_radio.constants import (
    CONF_BASE_URL,
    CONF_BIND_IP,
    CONF_BIND_PORT,
    DEFAULT_BIND_IP,
    DEFAULT_PORT,
)
from vinyl_radio.server.helpers.webserver import Webserver
from vinyl_radio.server.models.core_controller import CoreController

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from vinyl_radio.server import RadioServer

HTTP_STATUS_MAP: dict[type[RadioError], int] = {
    NotFoundError: 404,
    InvalidCommand: 400,
    InvalidDataError: 400,
}


class WebserverController(CoreController):
    """Core Controller that manages the builtin webserver that hosts the api."""

    domain: str = "webserver"

    def __init__(self, radio: RadioServer) -> None:
        """Initialize instance."""
        super().__init__(radio)
        self._server = Webserver(self.logger)
        self.app: web.Application | None = None

    @property
    def base_url(self) -> str:
        """Return the base_url for the webserver."""
        return self._server.base_url

    async def setup(self) -> None:
        """Async initialize of module."""
        routes: list[tuple[str, str, Callable[[web.Request], Awaitable[web.Response]]]] = [
            ("GET", "/info", self._handle_server_info),
            ("GET", "/api/radio/status", self._handle_status),
            ("POST", "/api/radio/control", self._handle_control),
            ("POST", "/api/radio/playlist", self._handle_playlist),
            ("GET", "/api/radio/algorithms", self._handle_algorithms),
            ("POST", "/api/radio/like", self._handle_like),
            ("POST", "/api", self._handle_command),
        ]
        self.app = self._server.create_app(routes, middlewares=(self._error_middleware,))
        bind_port: int = self.radio.config.get(CONF_BIND_PORT, DEFAULT_PORT)
        bind_ip: str = self.radio.config.get(CONF_BIND_IP, DEFAULT_BIND_IP)
        base_url: str = self.radio.config.get(CONF_BASE_URL, f"http://localhost:{bind_port}")
        if not self.radio.serve_http:
            self.logger.debug("Not serving the api (disabled)")
            return
        await self._server.setup(bind_ip=bind_ip, bind_port=bind_port, base_url=base_url)

    async def close(self) -> None:
        """Cleanup on exit."""
        await self._server.close()

    @web.middleware
    async def _error_middleware(
        self,
        request: web.Request,
        handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
    ) -> web.StreamResponse:
        """Translate errors into a json error response."""
        try:
            return await handler(request)
        except web.HTTPException:
            raise
        except RadioError as err:
            status = next(
                (code for err_type, code in HTTP_STATUS_MAP.items() if isinstance(err, err_type)),
                500,
            )
            if status == 500:
                self.logger.error("Error handling %s %s: %s", request.method, request.path, err)
            else:
                self.logger.debug("%s %s failed: %s", request.method, request.path, str(err))
            return _json_response(
                ControlResult(success=False, error=str(err), error_code=err.error_code),
                status=status,
            )
        except Exception as err:  # pylint: disable=broad-except
            self.logger.exception("Unexpected error handling %s %s", request.method, request.path)
            return _json_response(
                ControlResult(success=False, error=str(err), error_code=999), status=500
            )

    async def _handle_server_info(self, request: web.Request) -> web.Response:
        """Handle request for server info."""
        return web.json_response(self.radio.get_server_info().to_dict())

    async def _handle_status(self, request: web.Request) -> web.Response:
        """Handle request for the radio status."""
        return _json_response(self.radio.radio.get_status())

    async def _handle_control(self, request: web.Request) -> web.Response:
        """Handle a radio control command."""
        command = ControlCommand.from_dict(await _read_json(request, ControlCommand))
        result = await self.radio.radio.control(command.action, command.track_id, command.config)
        return _json_response(result)

    async def _handle_playlist(self, request: web.Request) -> web.Response:
        """Handle a request to generate a playlist for the radio."""
        data = await _read_json(request, PlaylistConfig) if request.can_read_body else {}
        reuse = data.pop("reuse", True)
        config = PlaylistConfig.from_dict(data)
        return _json_response(self.radio.radio.generate_playlist(config, reuse=bool(reuse)))

    async def _handle_algorithms(self, request: web.Request) -> web.Response:
        """Handle request for the available playlist algorithms."""
        algorithms = self.radio.playlists.get_algorithms()
        return _json_response({"success": True, "algorithms": algorithms})

    async def _handle_like(self, request: web.Request) -> web.Response:
        """Handle a like/unlike of a track."""
        data = await _read_json(request)
        if not (track_id := data.get("trackId")):
            msg = "trackId is required"
            raise InvalidDataError(msg)
        try:
            action = LikeAction(data.get("action", LikeAction.LIKE))
        except ValueError as err:
            msg = f"Invalid like action: {data.get('action')}"
            raise InvalidDataError(msg) from err
        result = self.radio.catalog.like(track_id, action, data.get("userId"))
        return _json_response(result)

    async def _handle_command(self, request: web.Request) -> web.Response:
        """Handle a (generic) api command."""
        msg = CommandMessage.from_dict(await _read_json(request, CommandMessage))
        handler = self.radio.command_handlers.get(msg.command)
        if handler is None:
            self.logger.warning("Invalid command: %s", msg.command)
            err_msg = f"Invalid command: {msg.command}"
            raise InvalidCommand(err_msg)
        try:
            result = await handler.execute(msg.args)
        except RadioError as err:
            self.logger.error("Error handling command %s: %s", msg.command, str(err))
            return _json_response(
                CommandResultMessage(success=False, error_code=err.error_code, details=str(err)),
                status=HTTP_STATUS_MAP.get(type(err), 500),
            )
        return _json_response(CommandResultMessage(success=True, result=result))


async def _read_json(request: web.Request, target: type | None = None) -> dict[str, Any]:
    """Read the json body of a request, validated against the target model."""
    try:
        data = await request.json(loads=json_loads)
    except JSON_DECODE_EXCEPTIONS as err:
        msg = f"Invalid JSON: {err}"
        raise InvalidDataError(msg) from err
    if not isinstance(data, dict):
        msg = "Expected a JSON object"
        raise InvalidDataError(msg)
    if target is not None:
        try:
            target.from_dict(data)
        except (LookupError, TypeError, ValueError) as err:
            msg = f"Invalid request: {err}"
            raise InvalidDataError(msg) from err
    return data


def _json_response(data: Any, status: int = 200) -> web.Response:
    """Return a json response, models are serialized by their (camelCase) aliases."""
    return web.Response(body=json_dumps(data), status=status, content_type="application/json")
