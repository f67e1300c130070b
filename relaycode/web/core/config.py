"""Configuration constants for the relaycode web backend."""

API_PREFIX = "/api"

# SSE response headers: disable proxy buffering for real-time streaming
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",
}

# Port environment variables, highest precedence first
PORT_ENV_VARS = ("RELAYCODE_PORT", "PORT")
