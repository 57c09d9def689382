"""Central runtime configuration for the J2ME gateway proxy.
Every value can be overridden through the environment of the process.
"""
import os

# Listener for constrained clients
SERVER_HOST = os.environ.get("HOST", "0.0.0.0")
TCP_PORT = int(os.environ.get("PORT", 8081))

# Upstream REST API (typing indicator)
API_BASE = os.environ.get("API_BASE", "https://discord.com/api/v9").rstrip("/")
TYPING_TIMEOUT = float(os.environ.get("TYPING_TIMEOUT", 10))

# READY payloads of large accounts are several MiB
UPSTREAM_MAX_SIZE = int(os.environ.get("UPSTREAM_MAX_SIZE", 16 * 2**20))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

APP_NAME = "J2ME Gateway Proxy"
