"""Various (server-only) tools and helpers."""

from __future__ import annotations

import logging
import os
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from uuid import uuid4

from aiofiles import os as aios

from vinyl_radio.constants import ROOT_LOGGER_NAME, TEMP_FILE_PREFIX

LOGGER = logging.getLogger(f"{ROOT_LOGGER_NAME}.helpers.util")


async def get_package_version(pkg_name: str) -> str:
    """Return the version of an installed (python) package."""
    try:
        return pkg_version(pkg_name)
    except PackageNotFoundError:
        return "0.0.0"


def create_temp_path(temp_dir: str, name: str | None = None, suffix: str = "") -> str:
    """Return the path for a new (not yet existing) temporary file."""
    if name is None:
        name = uuid4().hex
    return os.path.join(temp_dir, f"{TEMP_FILE_PREFIX}{name}{suffix}")


async def remove_file(path: str) -> bool:
    """Remove a (temporary) file, returns False if it did not exist."""
    try:
        await aios.remove(path)
    except FileNotFoundError:
        return False
    return True


async def sweep_temp_dir(temp_dir: str) -> int:
    """Remove all (orphaned) temporary files from the given directory."""
    if not await aios.path.isdir(temp_dir):
        await aios.makedirs(temp_dir, exist_ok=True)
        return 0
    count = 0
    for filename in await aios.listdir(temp_dir):
        if not filename.startswith(TEMP_FILE_PREFIX):
            continue
        if await remove_file(os.path.join(temp_dir, filename)):
            count += 1
    if count:
        LOGGER.debug("Removed %s temporary file(s) from %s", count, temp_dir)
    return count
