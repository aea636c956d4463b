"""
Shipline Constants

Centralized constants for magic values, defaults, and configuration.
"""

# Default config file
DEFAULT_CONFIG_FILE = "shipline.yml"

# Stage names, in execution order
STAGE_TEST = "test"
STAGE_BUILD = "build"
STAGE_PUSH = "push"
STAGE_DEPLOY = "deploy"
STAGE_ORDER = (STAGE_TEST, STAGE_BUILD, STAGE_PUSH, STAGE_DEPLOY)

# Command time bounds (seconds)
DEFAULT_STEP_TIMEOUT = 1800
DEFAULT_SSH_TIMEOUT = 300
SSH_CONNECTION_TIMEOUT = 10

# Health wait defaults
DEFAULT_HEALTH_INTERVAL = 5.0
DEFAULT_HEALTH_MAX_ATTEMPTS = 12
DEFAULT_TCP_PROBE_TIMEOUT = 2.0

# Docker configuration
DEFAULT_DOCKER_REGISTRY = "docker.io"
DEFAULT_IMAGE_TAG = "latest"
DEFAULT_RESTART_POLICY = "unless-stopped"
DEFAULT_BUILD_CONTEXT = "."

# ssh exits with 255 when the connection itself fails
SSH_TRANSPORT_EXIT_CODE = 255

# Docker daemon message for a missing container
DOCKER_NOT_FOUND_MARKERS = ("no such container",)

# Secret handle names
SECRET_DOCKER_USERNAME = "DOCKER_USERNAME"
SECRET_DOCKER_PASSWORD = "DOCKER_PASSWORD"
SECRET_DEPLOY_HOST = "DEPLOY_HOST"
SECRET_DEPLOY_USER = "DEPLOY_USER"
SECRET_DEPLOY_KEY = "DEPLOY_KEY"

# Log Configuration
LOG_DATE_FORMAT = "%Y-%m-%d"
LOG_TIME_FORMAT = "%H-%M-%S"
REDACTED = "***"
# Secrets shorter than this are only masked as whole tokens (e.g. "root@")
SHORT_SECRET_LENGTH = 8

# Exit codes
EXIT_CANCELLED = 130
