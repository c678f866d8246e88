"""Constants for docbridge."""

from docbridge import __version__

# Application constants
APP_NAME = "docbridge"
APP_VERSION = __version__

# Default paths
DEFAULT_LOG_DIR = ".logs"
DEFAULT_CONFIG_FILE = "docbridge.yaml"
DEFAULT_DOWNLOAD_DIR = "downloads"
DEFAULT_MEDIA_DIR = "media"

# Engine bootstrap, relative to the deployment base path
DEFAULT_ENGINE_BASE_PATH = "."
DEFAULT_ENGINE_SCRIPT_PATH = "x2t/x2t"

# Engine working namespace
WORKING_DIR = "/working"
MEDIA_DIR = "/working/media"
FONTS_DIR = "/working/fonts"
THEMES_DIR = "/working/themes"
WORKING_DIRS = (WORKING_DIR, MEDIA_DIR, FONTS_DIR, THEMES_DIR)
DESCRIPTOR_PATH = "/working/params.xml"

# Timeout settings (seconds)
DEFAULT_INIT_TIMEOUT = 300.0  # 5 minutes
DEFAULT_CALL_TIMEOUT = 120
DEFAULT_RELEASE_DELAY = 0.1

# x2t source format code for delimited text
CSV_FORMAT_CODE = 260

# Filename sanitizing
FALLBACK_FILENAME = "file.bin"
FALLBACK_STEM = "file"
FALLBACK_EXTENSION = "bin"
MAX_STEM_LENGTH = 200

UTF8_BOM = b"\xef\xbb\xbf"
