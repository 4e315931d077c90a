"""Vinyl Radio setup."""
import os
from pathlib import Path

from setuptools import find_packages, setup

PROJECT_NAME = "Vinyl Radio"
PROJECT_PACKAGE_NAME = "vinyl_radio"
PROJECT_VERSION = "1.0.0"
PROJECT_REQ_PYTHON_VERSION = "3.11"
PROJECT_LICENSE = "Apache License 2.0"
PROJECT_AUTHOR = "Vinyl Radio developers"
PROJECT_EMAIL = "dev@vinylradio.example.com"

PROJECT_GITHUB_USERNAME = "vinyl-radio"
PROJECT_GITHUB_REPOSITORY = "vinyl-radio"

PYPI_URL = f"https://pypi.python.org/pypi/{PROJECT_PACKAGE_NAME}"
GITHUB_PATH = f"{PROJECT_GITHUB_USERNAME}/{PROJECT_GITHUB_REPOSITORY}"
GITHUB_URL = f"https://github.com/{GITHUB_PATH}"

DOWNLOAD_URL = f"{GITHUB_URL}/archive/{PROJECT_VERSION}.zip"
PROJECT_URLS = {
    "Bug Reports": f"{GITHUB_URL}/issues",
    "Website": GITHUB_URL,
}
PROJECT_DIR = Path(__file__).parent.resolve()
README_FILE = PROJECT_DIR / "README.md"
REQUIREMENTS_FILE = PROJECT_DIR / "requirements.txt"
PACKAGES = find_packages(exclude=["tests", "tests.*"])
PACKAGE_FILES = []
for (path, directories, filenames) in os.walk("vinyl_radio/"):
    for filename in filenames:
        PACKAGE_FILES.append(os.path.join("..", path, filename))

setup(
    name=PROJECT_PACKAGE_NAME,
    version=PROJECT_VERSION,
    url=GITHUB_URL,
    download_url=DOWNLOAD_URL,
    project_urls=PROJECT_URLS,
    author=PROJECT_AUTHOR,
    author_email=PROJECT_EMAIL,
    license=PROJECT_LICENSE,
    long_description=README_FILE.read_text(encoding="utf-8"),
    long_description_content_type="text/markdown",
    packages=PACKAGES,
    include_package_data=True,
    zip_safe=False,
    install_requires=REQUIREMENTS_FILE.read_text(encoding="utf-8"),
    extras_require={
        "test": ["pytest", "pytest-asyncio", "pytest-aiohttp"],
    },
    python_requires=f">={PROJECT_REQ_PYTHON_VERSION}",
    test_suite="tests",
    package_data={"vinyl_radio": PACKAGE_FILES},
    entry_points={"console_scripts": ["vinyl-radio = vinyl_radio.__main__:main"]},
)
