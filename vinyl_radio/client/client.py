"""Vinyl Radio Client: talk to the radio status/control api over HTTP."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from aiohttp import ClientError, ClientSession, ClientTimeout

from vinyl_radio.client.exceptions import (
    CannotConnect,
    InvalidMessage,
    InvalidServerVersion,
    TransportError,
)
from vinyl_radio.common.helpers.json import JSON_DECODE_EXCEPTIONS, json_dumps, json_loads
from vinyl_radio.common.models.api import (
    ControlResult,
    LikeResult,
    PlaylistSummary,
    RadioStatusMessage,
    ServerInfoMessage,
)
from vinyl_radio.common.models.enums import ControlAction, LikeAction
from vinyl_radio.common.models.errors import ERROR_MAP
from vinyl_radio.common.models.playlist import PlaylistAlgorithm, PlaylistConfig
from vinyl_radio.constants import API_SCHEMA_VERSION

if TYPE_CHECKING:
    from types import TracebackType

DEFAULT_TIMEOUT = ClientTimeout(total=15)


class RadioClient:
    """Query and control a Vinyl Radio server remotely."""

    def __init__(self, server_url: str, aiohttp_session: ClientSession | None = None) -> None:
        """Initialize the Vinyl Radio client."""
        self.server_url = server_url.rstrip("/")
        self.logger = logging.getLogger(__package__)
        self._http_session = aiohttp_session
        self._owns_session = aiohttp_session is None
        self._server_info: ServerInfoMessage | None = None

    @property
    def server_info(self) -> ServerInfoMessage | None:
        """Return info of the server we're currently connected to."""
        return self._server_info

    async def connect(self) -> ServerInfoMessage:
        """Fetch (and validate) the info of the remote server."""
        try:
            result = await self._request("GET", "/info")
        except TransportError as err:
            raise CannotConnect(err.error or err) from err
        info = ServerInfoMessage.from_dict(result)
        if info.schema_version > API_SCHEMA_VERSION:
            msg = (
                f"Schema version is incompatible: {info.schema_version}, "
                f"this client supports up to {API_SCHEMA_VERSION}."
            )
            raise InvalidServerVersion(msg)
        self._server_info = info
        self.logger.info(
            "Connected to Vinyl Radio Server %s, Version %s, Schema Version %s",
            info.server_id,
            info.server_version,
            info.schema_version,
        )
        return info

    async def get_status(self) -> RadioStatusMessage:
        """Return the status of the radio."""
        return RadioStatusMessage.from_dict(await self._request("GET", "/api/radio/status"))

    async def control(
        self,
        action: ControlAction,
        track_id: str | None = None,
        config: dict[str, Any] | None = None,
    ) -> ControlResult:
        """Send a control action to the radio."""
        payload: dict[str, Any] = {"action": action.value}
        if track_id is not None:
            payload["trackId"] = track_id
        if config is not None:
            payload["config"] = config
        return ControlResult.from_dict(await self._request("POST", "/api/radio/control", payload))

    async def generate_playlist(
        self, config: PlaylistConfig | None = None, reuse: bool = True
    ) -> PlaylistSummary:
        """Request a (new) playlist for the radio."""
        payload = config.to_dict() if config else {}
        payload["reuse"] = reuse
        return PlaylistSummary.from_dict(
            await self._request("POST", "/api/radio/playlist", payload)
        )

    async def get_algorithms(self) -> list[PlaylistAlgorithm]:
        """Return the available playlist algorithms."""
        result = await self._request("GET", "/api/radio/algorithms")
        return [PlaylistAlgorithm.from_dict(x) for x in result["algorithms"]]

    async def like(
        self, track_id: str, action: LikeAction = LikeAction.LIKE, user_id: str | None = None
    ) -> LikeResult:
        """Like or unlike a track."""
        payload = {"trackId": track_id, "action": action.value, "userId": user_id}
        return LikeResult.from_dict(await self._request("POST", "/api/radio/like", payload))

    async def send_command(self, command: str, **kwargs: Any) -> Any:
        """Send a (generic) command and return its result."""
        result = await self._request("POST", "/api", {"command": command, "args": kwargs})
        return result.get("result")

    async def disconnect(self) -> None:
        """Close the (owned) http session."""
        if self._owns_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    async def _request(
        self, method: str, path: str, payload: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Perform a request on the api, errors reported by the server are raised."""
        if self._http_session is None:
            self._http_session = ClientSession()
        try:
            async with self._http_session.request(
                method,
                f"{self.server_url}{path}",
                data=json_dumps(payload) if payload is not None else None,
                headers={"Content-Type": "application/json"},
                timeout=DEFAULT_TIMEOUT,
            ) as resp:
                body = await resp.text()
        except (ClientError, TimeoutError) as err:
            msg = f"Request {method} {path} failed: {err}"
            raise TransportError(msg, err) from err
        try:
            result = json_loads(body)
        except JSON_DECODE_EXCEPTIONS as err:
            msg = f"Received invalid JSON from {path} (status {resp.status})"
            raise InvalidMessage(msg) from err
        if not isinstance(result, dict):
            msg = f"Received unexpected message from {path}"
            raise InvalidMessage(msg)
        if result.get("success") is False and (
            error_code := result.get("errorCode", result.get("error_code"))
        ):
            exc = ERROR_MAP.get(error_code, ERROR_MAP[0])
            raise exc(result.get("error") or result.get("details"))
        return result

    async def __aenter__(self) -> RadioClient:
        """Initialize and connect to the Vinyl Radio Server."""
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool | None:
        """Exit context manager."""
        await self.disconnect()
        return None

    def __repr__(self) -> str:
        """Return the representation."""
        prefix = "" if self._server_info else "not "
        return f"{type(self).__name__}(server_url={self.server_url}, {prefix}connected)"
