"""Model/base for a Core controller within Vinyl Radio."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from vinyl_radio.constants import CONF_LOG_LEVEL, ROOT_LOGGER_NAME

if TYPE_CHECKING:
    from vinyl_radio.server import RadioServer


class CoreController:
    """Base representation of a Core controller within Vinyl Radio."""

    domain: str  # used as identifier (=name of the module)

    def __init__(self, radio: RadioServer) -> None:
        """Initialize the controller."""
        self.radio = radio
        self._set_logger()

    async def setup(self) -> None:
        """Async initialize of module."""

    async def close(self) -> None:
        """Handle logic on server stop."""

    async def reload(self) -> None:
        """Reload this core controller."""
        await self.close()
        self._set_logger()
        await self.setup()

    def _set_logger(self) -> None:
        """Set the logger settings."""
        radio_logger = logging.getLogger(ROOT_LOGGER_NAME)
        self.logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{self.domain}")
        log_level = self.radio.config.get(f"{CONF_LOG_LEVEL}/{self.domain}", "GLOBAL")
        self.log_level = log_level
        if log_level == "GLOBAL":
            self.logger.setLevel(radio_logger.level)
        else:
            self.logger.setLevel("DEBUG" if log_level == "VERBOSE" else log_level)
            # if the root logger's level is higher, we need to adjust that too
            if logging.getLogger().level > self.logger.level:
                logging.getLogger().setLevel(self.logger.level)
