"""Main Vinyl Radio (server) class."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable, Coroutine
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import aiofiles
from aiohttp import ClientSession, TCPConnector

from vinyl_radio.common.models.api import ServerInfoMessage
from vinyl_radio.common.models.enums import EventType
from vinyl_radio.common.models.errors import NotFoundError
from vinyl_radio.common.models.event import RadioEvent
from vinyl_radio.constants import (
    API_SCHEMA_VERSION,
    CONF_SERVER_ID,
    LOG_FILENAME,
    ROOT_LOGGER_NAME,
    VERBOSE_LOG_LEVEL,
)
from vinyl_radio.server.controllers.catalog import CatalogController
from vinyl_radio.server.controllers.config import ConfigController
from vinyl_radio.server.controllers.live_audio import LiveAudioController
from vinyl_radio.server.controllers.playlists import PlaylistsController
from vinyl_radio.server.controllers.radio import RadioController
from vinyl_radio.server.controllers.webserver import WebserverController
from vinyl_radio.server.helpers.api import APICommandHandler, api_command
from vinyl_radio.server.helpers.util import get_package_version

if TYPE_CHECKING:
    from vinyl_radio.server.models.core_controller import CoreController
    from vinyl_radio.server.models.transcoder import Transcoder

EventCallBackType = Callable[[RadioEvent], None]
EventSubscriptionType = tuple[
    EventCallBackType, tuple[EventType, ...] | None, tuple[str, ...] | None
]

LOGGER = logging.getLogger(ROOT_LOGGER_NAME)


class RadioServer:
    """Main Vinyl Radio (Server) object."""

    loop: asyncio.AbstractEventLoop
    http_session: ClientSession
    config: ConfigController
    webserver: WebserverController
    catalog: CatalogController
    playlists: PlaylistsController
    live_audio: LiveAudioController
    radio: RadioController

    def __init__(
        self,
        storage_path: str,
        transcoder: Transcoder | None = None,
        serve_http: bool = True,
        config_overrides: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the Vinyl Radio Server."""
        self.storage_path = storage_path
        self.serve_http = serve_http
        self._transcoder = transcoder
        self._config_overrides = config_overrides or {}
        # we dynamically register command handlers which can be consumed by the apis
        self.command_handlers: dict[str, APICommandHandler] = {}
        self._subscribers: set[EventSubscriptionType] = set()
        self._tracked_tasks: dict[str, asyncio.Task] = {}
        self._tracked_timers: dict[str, asyncio.TimerHandle] = {}
        self.closing = False
        self.version: str = "0.0.0"

    async def start(self) -> None:
        """Start running the Vinyl Radio server."""
        self.loop = asyncio.get_running_loop()
        self.version = await get_package_version("vinyl_radio")
        # create shared aiohttp ClientSession
        self.http_session = ClientSession(
            loop=self.loop,
            connector=TCPConnector(
                ssl=False,
                enable_cleanup_closed=True,
                limit=4096,
                limit_per_host=100,
            ),
        )
        # setup config controller first and fetch important config values
        self.config = ConfigController(self)
        await self.config.setup()
        for key, value in self._config_overrides.items():
            self.config.set(key, value)
        LOGGER.info(
            "Starting Vinyl Radio Server (%s) version %s",
            self.server_id,
            self.version,
        )
        # setup other core controllers
        self.catalog = CatalogController(self)
        self.playlists = PlaylistsController(self)
        self.live_audio = LiveAudioController(self, self._transcoder)
        self.radio = RadioController(self)
        self.webserver = WebserverController(self)
        await self.catalog.setup()
        await self.playlists.setup()
        await self.live_audio.setup()
        await self.radio.setup()
        # load the webserver last so the api is not yet available while we're starting
        self._register_api_commands()
        await self.webserver.setup()

    async def stop(self) -> None:
        """Stop running the Vinyl Radio server."""
        LOGGER.info("Stop called, cleaning up...")
        self.signal_event(EventType.SHUTDOWN)
        # stop the output process before the event bus goes quiet
        await self.live_audio.close()
        self.closing = True
        # cancel all running tasks
        for task in list(self._tracked_tasks.values()):
            task.cancel()
        for handle in self._tracked_timers.values():
            handle.cancel()
        # stop core controllers
        await self.webserver.close()
        await self.radio.close()
        await self.playlists.close()
        await self.catalog.close()
        await self.config.close()
        # close/cleanup shared http session
        if self.http_session:
            await self.http_session.close()

    @property
    def server_id(self) -> str:
        """Return unique ID of this server."""
        if not self.config.initialized:
            return ""
        return self.config.get(CONF_SERVER_ID)  # type: ignore[no-any-return]

    @api_command("info")
    def get_server_info(self) -> ServerInfoMessage:
        """Return Info of this server."""
        return ServerInfoMessage(
            server_id=self.server_id,
            server_version=self.version,
            schema_version=API_SCHEMA_VERSION,
            base_url=self.webserver.base_url,
        )

    @api_command("logging/get")
    async def get_application_log(self) -> str:
        """Return the application log from file."""
        logfile = os.path.join(self.storage_path, LOG_FILENAME)
        async with aiofiles.open(logfile, "r") as _file:
            return await _file.read()

    def get_controller(self, domain: str) -> CoreController:
        """Return a core controller by its domain."""
        for controller in (self.catalog, self.playlists, self.live_audio, self.radio):
            if controller.domain == domain:
                return controller
        if domain == self.webserver.domain:
            return self.webserver
        msg = f"Unknown controller: {domain}"
        raise NotFoundError(msg)

    def signal_event(
        self,
        event: EventType,
        object_id: str | None = None,
        data: Any = None,
    ) -> None:
        """Signal event to subscribers."""
        if self.closing:
            return

        if LOGGER.isEnabledFor(VERBOSE_LOG_LEVEL):
            LOGGER.getChild("event").log(VERBOSE_LOG_LEVEL, "%s %s", event.value, object_id or "")

        event_obj = RadioEvent(event=event, object_id=object_id, data=data)
        for cb_func, event_filter, id_filter in list(self._subscribers):
            if not (event_filter is None or event in event_filter):
                continue
            if not (id_filter is None or object_id in id_filter):
                continue
            if asyncio.iscoroutinefunction(cb_func):
                asyncio.run_coroutine_threadsafe(cb_func(event_obj), self.loop)
            else:
                self.loop.call_soon_threadsafe(cb_func, event_obj)

    def subscribe(
        self,
        cb_func: EventCallBackType,
        event_filter: EventType | tuple[EventType, ...] | None = None,
        id_filter: str | tuple[str, ...] | None = None,
    ) -> Callable:
        """Add callback to event listeners.

        Returns function to remove the listener.
            :param cb_func: callback function or coroutine
            :param event_filter: Optionally only listen for these events
            :param id_filter: Optionally only listen for these id's (stream_id, playlist_id)
        """
        if isinstance(event_filter, EventType):
            event_filter = (event_filter,)
        if isinstance(id_filter, str):
            id_filter = (id_filter,)
        listener = (cb_func, event_filter, id_filter)
        self._subscribers.add(listener)

        def remove_listener() -> None:
            self._subscribers.remove(listener)

        return remove_listener

    def create_task(
        self,
        target: Coroutine | Awaitable | Callable,
        *args: Any,
        task_id: str | None = None,
        **kwargs: Any,
    ) -> asyncio.Task | asyncio.Future:
        """Create Task on (main) event loop from Coroutine(function).

        Tasks created by this helper will be properly cancelled on stop.
        """
        if target is None:
            msg = "Target is missing"
            raise RuntimeError(msg)
        if task_id and (existing := self._tracked_tasks.get(task_id)):
            # prevent duplicate tasks if task_id is given and already present
            return existing
        if asyncio.iscoroutinefunction(target):
            task = self.loop.create_task(target(*args, **kwargs))
        elif asyncio.iscoroutine(target):
            task = self.loop.create_task(target)
        else:
            task = self.loop.create_task(asyncio.to_thread(target, *args, **kwargs))

        def task_done_callback(_task: asyncio.Task) -> None:
            self._tracked_tasks.pop(task_id, None)
            # log unhandled exceptions
            if not _task.cancelled() and (err := _task.exception()):
                task_name = _task.get_name() if hasattr(_task, "get_name") else str(_task)
                LOGGER.warning(
                    "Exception in task %s - target: %s: %s",
                    task_name,
                    str(target),
                    str(err),
                    exc_info=err if LOGGER.isEnabledFor(logging.DEBUG) else None,
                )

        if task_id is None:
            task_id = uuid4().hex
        self._tracked_tasks[task_id] = task
        task.add_done_callback(task_done_callback)
        return task

    def call_later(
        self,
        delay: float,
        target: Coroutine | Awaitable | Callable,
        *args: Any,
        task_id: str | None = None,
        **kwargs: Any,
    ) -> asyncio.TimerHandle:
        """
        Run callable/awaitable after given delay.

        Use task_id for debouncing.
        """
        if not task_id:
            task_id = uuid4().hex

        if existing := self._tracked_timers.get(task_id):
            existing.cancel()

        def _create_task() -> None:
            self._tracked_timers.pop(task_id)
            self.create_task(target, *args, task_id=task_id, **kwargs)

        handle = self.loop.call_later(delay, _create_task)
        self._tracked_timers[task_id] = handle
        return handle

    def register_api_command(
        self,
        command: str,
        handler: Callable,
    ) -> None:
        """Dynamically register a command on the API."""
        if command in self.command_handlers:
            msg = f"Command {command} is already registered"
            raise RuntimeError(msg)
        self.command_handlers[command] = APICommandHandler.parse(command, handler)

    def _register_api_commands(self) -> None:
        """Register all methods decorated as api_command within a class(instance)."""
        for cls in (
            self,
            self.config,
            self.catalog,
            self.playlists,
            self.live_audio,
            self.radio,
        ):
            for attr_name in dir(cls):
                if attr_name.startswith("__"):
                    continue
                obj = getattr(cls, attr_name)
                if hasattr(obj, "api_cmd"):
                    # method is decorated with our api decorator
                    self.register_api_command(obj.api_cmd, obj)
