# /src/core/config_validator.py
# Run at startup to validate the upstream and HTTP settings.
from urllib.parse import urlparse

from src.core.config import settings
from src.core.logger import log

def validate():
    log.info("--- CONFIG VALIDATION START ---")
    errors = []

    if urlparse(settings.FEE_ESTIMATE_URL).scheme not in ("http", "https"):
        errors.append(f"FEE_ESTIMATE_URL must be an http(s) URL: {settings.FEE_ESTIMATE_URL!r}")
    if not settings.FEE_ESTIMATE_USER_AGENT.strip():
        errors.append("FEE_ESTIMATE_USER_AGENT must not be empty")
    if settings.HTTP_TIMEOUT_SECONDS <= 0:
        errors.append("HTTP_TIMEOUT_SECONDS must be positive")

    if errors:
        for error in errors:
            log.critical(error)
        raise ValueError("System configuration is incomplete. Halting.")

    log.info("--- CONFIG VALIDATION PASSED ---")

if __name__ == "__main__":
    validate()
