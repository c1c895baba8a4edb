"""
Configuration
=============
Loads environment variables from .env file using python-dotenv.

Environment Variables:
    WORKSPACE_ROOT        — Directory holding one clone per service (default: ./workspace)
    CONTAINER_ENGINE      — Container CLI used for build/run/inspect/kill (default: docker)
    CONTAINER_PREFIX      — Prefix for image tags and container names (default: calc-harness)
    SERVICE_PORT          — Port the services listen on inside their container (default: 8080)
    HEALTHCHECK_ATTEMPTS  — Max GET /healthcheck attempts per service (default: 10)
    HEALTHCHECK_INTERVAL  — Seconds to sleep between failed healthchecks (default: 1)
    REQUEST_TIMEOUT       — Deadline in seconds for a single test request (default: 5)
    HTTP_TIMEOUT          — Transport-level read timeout for the HTTP client (default: 30)
    HTTP_CONNECT_TIMEOUT  — Transport-level connect timeout (default: 2)
    BUILD_TAIL_LINES      — Build output lines kept for diagnostics (default: 6)
    LOG_LEVEL             — Root log level (default: INFO)
    LOG_DIR               — If set, a daily log file is also written here

Request Deadline vs Transport Timeout:
    REQUEST_TIMEOUT is what classifies a test case as a timeout. HTTP_TIMEOUT
    only bounds how long an abandoned request may linger in the background,
    so it should stay well above REQUEST_TIMEOUT.
"""
import os
from dotenv import load_dotenv

load_dotenv()

WORKSPACE_ROOT = os.path.abspath(os.getenv("WORKSPACE_ROOT", "workspace"))

CONTAINER_ENGINE = os.getenv("CONTAINER_ENGINE", "docker")
CONTAINER_PREFIX = os.getenv("CONTAINER_PREFIX", "calc-harness")

SERVICE_PORT = int(os.getenv("SERVICE_PORT", 8080))

# Healthcheck retry budget
HEALTHCHECK_ATTEMPTS = int(os.getenv("HEALTHCHECK_ATTEMPTS", 10))
HEALTHCHECK_INTERVAL = float(os.getenv("HEALTHCHECK_INTERVAL", 1.0))

# Per-test-case deadline
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", 5.0))

# httpx transport limits
HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", 30.0))
HTTP_CONNECT_TIMEOUT = float(os.getenv("HTTP_CONNECT_TIMEOUT", 2.0))

BUILD_TAIL_LINES = int(os.getenv("BUILD_TAIL_LINES", 6))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = os.getenv("LOG_DIR", "")
