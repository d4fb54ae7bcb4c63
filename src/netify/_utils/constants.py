# Environment variables
DOTENV_FILE = ".env"
ENV_BASE_URL = "NETIFY_BASE_URL"
ENV_ACCESS_TOKEN = "NETIFY_ACCESS_TOKEN"
ENV_TIMEOUT = "NETIFY_TIMEOUT"
ENV_MAX_RETRY_COUNT = "NETIFY_MAX_RETRY_COUNT"
ENV_LOG_LEVEL = "NETIFY_LOG_LEVEL"

# Headers
HEADER_ACCEPT = "Accept"
HEADER_AUTHORIZATION = "Authorization"
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_RETRY_AFTER = "Retry-After"
HEADER_USER_AGENT = "User-Agent"

# Content types
CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_FORM = "application/x-www-form-urlencoded"
CONTENT_TYPE_MULTIPART = "multipart/form-data"
CONTENT_TYPE_OCTET_STREAM = "application/octet-stream"

LOGGER_NAME = "netify"
USER_AGENT = "Netify.Python"
