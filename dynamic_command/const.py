"""Constants for the Dynamic Solution API client.

This module contains the URL fragments, OAuth2 parameters, default
timeouts and display/image identifiers used throughout the package.
"""

IDENTITY_PATH = "/Identity/"
API_PATH = "/API/"
TOKEN_PATH = "connect/token"
BATCH_PATH = "api/batch"

GRANT_TYPE_PASSWORD = "password"
TOKEN_SCOPE = "basic_api"

# Client credentials are sent as a Latin-1 Basic header, not UTF-8
CLIENT_CREDENTIALS_ENCODING = "iso-8859-1"

CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_PNG = "image/png"

DEFAULT_TIMEOUT = 300.0
DEFAULT_RETRIES = 0
DEFAULT_FIRMWARE_POLL_INTERVAL = 30.0

DEFAULT_SERVER_URL = "https://192-168-56-3.ip.dev.zbddisplays.local"
DEFAULT_CLIENT_ID = "new_client_id"
DEFAULT_CLIENT_SECRET = "password"  # noqa: S105
DEFAULT_USERNAME = "admin@localhost"
DEFAULT_PASSWORD = "password"  # noqa: S105
DEFAULT_LOCATION_NAME = "Location_001"
DEFAULT_DISPLAY_SERIALS = [
    "JA00000001B",
    "JA00000002B",
    "JA00000003B",
    "JA00000004B",
    "JA00000005B",
]

# See Appendix A of the API reference for the full list of display types
DISPLAY_TYPE_CHROMA29 = 11
IMAGE_TYPE_PNG = 3

SAMPLE_IMAGE = "sample.png"
IMAGE_STORE_SCHEME = "dd-imagestore:///"

# Legacy query parameters the API still requires
LEGACY_CLIENT_ID = 0
LEGACY_DATA_SOURCE_ID = 0
