"""Logic to handle storage of persistent (configuration) settings."""

from __future__ import annotations

import logging
import os
from typing import TYPE_CHECKING, Any

import aiofiles
import shortuuid
from aiofiles.os import wrap

from vinyl_radio.common.helpers.json import JSON_DECODE_EXCEPTIONS, json_dumps, json_loads
from vinyl_radio.common.models.enums import EventType
from vinyl_radio.common.models.errors import InvalidDataError
from vinyl_radio.constants import CONF_LOG_LEVEL, CONF_SERVER_ID, ROOT_LOGGER_NAME
from vinyl_radio.server.helpers.api import api_command

if TYPE_CHECKING:
    import asyncio

    from vinyl_radio.server import RadioServer

LOGGER = logging.getLogger(f"{ROOT_LOGGER_NAME}.config")
DEFAULT_SAVE_DELAY = 5
SAVE_TASK_ID = "save_settings"
LOG_LEVELS = ("GLOBAL", "VERBOSE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

isfile = wrap(os.path.isfile)
remove = wrap(os.remove)
rename = wrap(os.rename)


class ConfigController:
    """Controller that handles storage of persistent configuration settings."""

    def __init__(self, radio: RadioServer) -> None:
        """Initialize storage controller."""
        self.radio = radio
        self.initialized = False
        self._data: dict[str, Any] = {}
        self.filename = os.path.join(self.radio.storage_path, "settings.json")
        self._timer_handle: asyncio.TimerHandle | None = None

    async def setup(self) -> None:
        """Async initialize of controller."""
        await self._load()
        self.initialized = True
        # create default server ID if needed
        self.set_default(CONF_SERVER_ID, shortuuid.uuid())
        LOGGER.debug("Started.")

    async def close(self) -> None:
        """Handle logic on server stop."""
        if not self._timer_handle:
            # no point in forcing a save when there are no changes pending
            return
        self._timer_handle.cancel()
        self._timer_handle = None
        await self._async_save()
        LOGGER.debug("Stopped.")

    def get(self, key: str, default: Any = None) -> Any:
        """Get value(s) for a specific key/path in persistent storage."""
        assert self.initialized, "Not yet (async) initialized"
        # we support a multi level hierarchy by providing the key as path,
        # with a slash (/) as splitter. Sort that out here.
        parent = self._data
        subkeys = key.split("/")
        for index, subkey in enumerate(subkeys):
            if index == (len(subkeys) - 1):
                value = parent.get(subkey, default)
                if value is None:
                    # replace None with default
                    return default
                return value
            if not isinstance(parent.get(subkey), dict):
                # requesting subkey from a non existing parent
                return default
            parent = parent[subkey]
        return default

    def set(self, key: str, value: Any) -> None:
        """Set value(s) for a specific key/path in persistent storage."""
        assert self.initialized, "Not yet (async) initialized"
        parent = self._data
        subkeys = key.split("/")
        for index, subkey in enumerate(subkeys):
            if index == (len(subkeys) - 1):
                parent[subkey] = value
            else:
                parent.setdefault(subkey, {})
                parent = parent[subkey]
        self.save()

    def set_default(self, key: str, default_value: Any) -> None:
        """Set default value(s) for a specific key/path in persistent storage."""
        assert self.initialized, "Not yet (async) initialized"
        cur_value = self.get(key, "__MISSING__")
        if cur_value == "__MISSING__":
            self.set(key, default_value)

    @api_command("config/log_level")
    async def set_log_level(self, domain: str, log_level: str) -> None:
        """Set the log level of a (core) controller."""
        log_level = log_level.upper()
        if log_level not in LOG_LEVELS:
            msg = f"Invalid log level: {log_level}"
            raise InvalidDataError(msg)
        controller = self.radio.get_controller(domain)
        self.set(f"{CONF_LOG_LEVEL}/{domain}", log_level)
        await controller.reload()
        self.radio.signal_event(EventType.CONFIG_UPDATED, domain, {"logLevel": log_level})

    def save(self) -> None:
        """Schedule save of data to disk."""
        # save scheduled (and debounced) to prevent excessive disk writes
        self._timer_handle = self.radio.call_later(
            DEFAULT_SAVE_DELAY, self._async_save, task_id=SAVE_TASK_ID
        )

    async def _load(self) -> None:
        """Load data from persistent storage."""
        assert not self._data, "Already loaded"

        for filename in (self.filename, f"{self.filename}.backup"):
            try:
                async with aiofiles.open(filename, "r", encoding="utf-8") as _file:
                    self._data = json_loads(await _file.read())
                    LOGGER.debug("Loaded persistent settings from %s", filename)
                    return
            except FileNotFoundError:
                pass
            except JSON_DECODE_EXCEPTIONS:
                LOGGER.exception("Error while reading persistent storage file %s", filename)
        LOGGER.debug("Started with empty storage: No persistent storage file found.")

    async def _async_save(self) -> None:
        """Save persistent data to disk."""
        self._timer_handle = None
        filename_backup = f"{self.filename}.backup"
        # make backup before we write a new file
        if await isfile(self.filename):
            if await isfile(filename_backup):
                await remove(filename_backup)
            await rename(self.filename, filename_backup)

        async with aiofiles.open(self.filename, "w", encoding="utf-8") as _file:
            await _file.write(json_dumps(self._data, indent=True))
        LOGGER.debug("Saved data to persistent storage")
