"""All constants for Vinyl Radio."""

from typing import Final

__version__: Final[str] = "1.0.0"

API_SCHEMA_VERSION: Final[int] = 1

ROOT_LOGGER_NAME: Final[str] = "vinyl_radio"
VERBOSE_LOG_LEVEL: Final[int] = 5
LOG_FILENAME: Final[str] = "vinylradio.log"

DEFAULT_PORT: Final[int] = 8097
DEFAULT_BIND_IP: Final[str] = "0.0.0.0"
DEFAULT_RADIO_NAME: Final[str] = "Vinyl Radio"

# config keys in the persistent settings file
CONF_SERVER_ID: Final[str] = "server_id"
CONF_BIND_IP: Final[str] = "bind_ip"
CONF_BIND_PORT: Final[str] = "bind_port"
CONF_BASE_URL: Final[str] = "base_url"
CONF_CATALOG: Final[str] = "catalog"
CONF_MIX_CONFIG: Final[str] = "mix_config"
CONF_RADIO_STREAM: Final[str] = "radio_stream"
CONF_PLAYLISTS: Final[str] = "playlists"
CONF_LIKES: Final[str] = "likes"
CONF_AD_LIBRARY: Final[str] = "ad_library"
CONF_TTS_URL: Final[str] = "tts_url"
CONF_OUTPUT_TARGET: Final[str] = "output_target"
CONF_LOG_LEVEL: Final[str] = "log_level"

# live audio processing
PROCESSING_INTERVAL: Final[float] = 1.0
TRANSCODE_TIMEOUT: Final[float] = 120.0
TEMP_DIR_NAME: Final[str] = "tmp"
TEMP_FILE_PREFIX: Final[str] = "vinylradio-"
PCM_SAMPLE_RATE: Final[int] = 44100
PCM_CHANNELS: Final[int] = 2
PCM_FORMAT: Final[str] = "s16le"
OUTPUT_BITRATE: Final[str] = "128k"

# playlist generation
TTS_INTRO_DURATION: Final[float] = 30.0
AD_DURATION: Final[float] = 30.0
AD_INTERVAL: Final[int] = 5
ARTIST_REPEAT_WINDOW: Final[int] = 3
RECENCY_WINDOW_DAYS: Final[int] = 30
PLAYLIST_RETENTION: Final[int] = 5
PLAYLIST_REUSE_MAX_AGE: Final[int] = 24 * 3600
PLAYLIST_REUSE_DURATION_TOLERANCE: Final[float] = 0.2

# status / client sync
STATUS_MAX_AGE: Final[int] = 90
STATUS_POLL_INTERVAL: Final[float] = 30.0
STATUS_FETCH_RATE_LIMIT: Final[float] = 2.0
MANUAL_CHANGE_GRACE: Final[float] = 2.0
DEFAULT_VOLUME: Final[float] = 0.8
