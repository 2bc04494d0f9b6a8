"""Server configuration — reads settings from environment variables.

All settings have sensible defaults for local development.  In production
the values are overridden via env vars.
"""

import os
from dataclasses import dataclass, field

# --- Pagination defaults ---
# Read at import time so FastAPI Query() defaults can reference them.
DEFAULT_PAGE_LIMIT = int(os.getenv("DEFAULT_PAGE_LIMIT", "20"))
MAX_PAGE_LIMIT = int(os.getenv("MAX_PAGE_LIMIT", "100"))


@dataclass(frozen=True)
class ServerSettings:
    """Immutable server configuration read from environment at startup."""

    # Network
    host: str = "0.0.0.0"
    port: int = 8080

    # CORS: comma-separated origins, or "*" for wide-open dev mode
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    # Question-set directory (None → the YAML packaged with relocation_flows)
    flows_dir: str | None = None

    # Logging
    log_level: str = "INFO"

    # Rendered downloads are written under documents_dir and served
    # (by the web server in front of us) from documents_base_url.
    documents_dir: str = "./var/documents"
    documents_base_url: str = "/documents"

    # Admin API key: shared secret for admin endpoints (None = disabled)
    admin_api_key: str | None = None

    # When set, requests carrying X-User-ID must also carry a matching
    # X-Proxy-Secret injected by the API gateway.
    trusted_proxy_secret: str | None = None

    # Anthropic API key (None → template generation only)
    anthropic_api_key: str | None = None


def load_settings() -> ServerSettings:
    """Build settings from ``SERVER_*`` environment variables."""
    raw_origins = os.getenv("SERVER_CORS_ORIGINS", "*")
    origins = [o.strip() for o in raw_origins.split(",") if o.strip()]

    return ServerSettings(
        host=os.getenv("SERVER_HOST", "0.0.0.0"),
        port=int(os.getenv("SERVER_PORT", "8080")),
        cors_origins=origins,
        flows_dir=os.getenv("SERVER_FLOWS_DIR") or None,
        log_level=os.getenv("SERVER_LOG_LEVEL", "INFO").upper(),
        documents_dir=os.getenv("SERVER_DOCUMENTS_DIR", "./var/documents"),
        documents_base_url=os.getenv("SERVER_DOCUMENTS_BASE_URL", "/documents"),
        admin_api_key=os.getenv("ADMIN_API_KEY") or None,
        trusted_proxy_secret=os.getenv("TRUSTED_PROXY_SECRET") or None,
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
    )
