"""
Runtime configuration, read once from the environment.

SANTA_LEDGER_FILE    JSON file backing the local ledger ("" keeps it in memory)
SANTA_LEDGER_URL     base URL of a ledger served by api.py
SANTA_POLL_INTERVAL  seconds between phase polls
SANTA_POLL_ATTEMPTS  polls before giving up
SANTA_CLAIM_ATTEMPTS slot re-selections after losing a registration race
SANTA_HTTP_TIMEOUT   seconds per HTTP request
SANTA_KDF_SALT       Scrypt salt for passphrase -> key derivation
SANTA_LOG_LEVEL      logging level when api.py runs as a script
SANTA_HOST           bind address when api.py runs as a script
SANTA_PORT           port when api.py runs as a script
"""

import os

LEDGER_FILE = os.environ.get("SANTA_LEDGER_FILE", "ledger.json") or None
LEDGER_URL = os.environ.get("SANTA_LEDGER_URL", "http://localhost:8000")

POLL_INTERVAL = float(os.environ.get("SANTA_POLL_INTERVAL", "5"))
POLL_ATTEMPTS = int(os.environ.get("SANTA_POLL_ATTEMPTS", "120"))
CLAIM_ATTEMPTS = int(os.environ.get("SANTA_CLAIM_ATTEMPTS", "5"))
HTTP_TIMEOUT = float(os.environ.get("SANTA_HTTP_TIMEOUT", "10"))

KDF_SALT = os.environ.get("SANTA_KDF_SALT", "secret-santa-fixed-salt").encode()

LOG_LEVEL = os.environ.get("SANTA_LOG_LEVEL", "INFO").upper()

HOST = os.environ.get("SANTA_HOST", "127.0.0.1")
PORT = int(os.environ.get("SANTA_PORT", "8000"))
