# ---
# File: statuspage/config.py
# Purpose: Environment-driven configuration shared by the API, the store
#          adapters and the background tasks
# ---

import os

# ---
# Persistence
# ---
# "prisma" talks to PostgreSQL through the generated Prisma client,
# "memory" keeps everything in-process (demos and tests).
DATABASE_BACKEND = os.environ.get("DATABASE_BACKEND", "prisma").strip().lower()
PERSISTENCE_TIMEOUT_SECONDS = float(os.environ.get("PERSISTENCE_TIMEOUT_SECONDS", "5"))

# ---
# Auth tokens
# ---
JWT_SECRET = os.environ.get("JWT_SECRET", "change-me-status-page-secret")
JWT_ALGORITHM = os.environ.get("JWT_ALGORITHM", "HS256")
JWT_EXPIRY_MINUTES = int(os.environ.get("JWT_EXPIRY_MINUTES", str(7 * 24 * 60)))

# ---
# Realtime fan-out
# ---
WS_SEND_TIMEOUT_SECONDS = float(os.environ.get("WS_SEND_TIMEOUT_SECONDS", "2"))

# ---
# HTTP surface
# ---
CORS_ALLOW_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("CORS_ALLOW_ORIGINS", "").split(",")
    if origin.strip()
]
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
PORT = int(os.environ.get("PORT", "8000"))

# ---
# Keep-alive (cold start prevention)
# ---
# Hosting platforms spin down idle free-tier apps; when KEEPALIVE_URL is set
# the server pings it every KEEPALIVE_INTERVAL_SECONDS.
KEEPALIVE_URL = os.environ.get("KEEPALIVE_URL", "").strip()
KEEPALIVE_INTERVAL_SECONDS = int(os.environ.get("KEEPALIVE_INTERVAL_SECONDS", "600"))
KEEPALIVE_TIMEOUT_SECONDS = int(os.environ.get("KEEPALIVE_TIMEOUT_SECONDS", "10"))
