"""Constants shared across the flow SDK.

Lifetimes for previews, saved documents and idempotency keys, the fixed
message fragments the conversation machine appends to prompts, and the
defaults for the AI completion backend.

Lifetimes and AI defaults can be overridden via environment variables so
that deployments can tune them without code changes.
"""

import os

# Preview artifacts live only until the member downloads them.
# Guides are cheap to regenerate; documents get a full day.
GUIDE_PREVIEW_TTL_SECONDS = int(os.getenv("GUIDE_PREVIEW_TTL_SECONDS", "3600"))
DOCUMENT_PREVIEW_TTL_SECONDS = int(os.getenv("DOCUMENT_PREVIEW_TTL_SECONDS", "86400"))

# Window during which a repeated completion or download is served from the
# idempotency cache instead of creating a new record.
DEDUP_WINDOW_SECONDS = int(os.getenv("DEDUP_WINDOW_SECONDS", "86400"))

# "My Documents" catalog lifetimes, per flow category.
SAVED_DOCUMENT_TTL_DAYS = int(os.getenv("SAVED_DOCUMENT_TTL_DAYS", "60"))
SAVED_GUIDE_TTL_DAYS = int(os.getenv("SAVED_GUIDE_TTL_DAYS", "30"))

# Handle prefixes for preview artifacts, per flow category.
HANDLE_PREFIXES: dict[str, str] = {
    "guide": "guide",
    "document": "gendoc",
}

# --- Message fragments ---
PROFILE_HINT_TEMPLATE = "\n\n(From your profile: **{value}**)"
LAST_QUESTION_NOTICE = (
    "\n\n_(This is the last question - your {noun} will be generated "
    "after you answer.)_"
)
DEFAULT_IDENTITY = "there"

# --- AI completion backend ---
AI_API_URL = os.getenv("AI_API_URL", "https://api.anthropic.com/v1/messages")
AI_API_VERSION = "2023-06-01"
AI_MODEL = os.getenv("AI_MODEL", "claude-sonnet-4-20250514")
AI_MAX_TOKENS = int(os.getenv("AI_MAX_TOKENS", "4000"))
AI_TIMEOUT_SECONDS = float(os.getenv("AI_TIMEOUT_SECONDS", "60"))

# Resource kinds accepted by the boundary ``clear`` operation.
RESOURCE_KINDS: set[str] = {"verification", "previews"}

# --- Completion messages, keyed by (category, ai_generated) ---
COMPLETION_MESSAGES: dict[tuple[str, bool], str] = {
    ("guide", True): "✅ Your personalized guide is ready!",
    ("guide", False): (
        "✅ Your guide is ready! It was built from our standard template "
        "using your answers."
    ),
    ("document", True): (
        "✅ Your document is ready! I've personalized it based on your answers."
    ),
    ("document", False): (
        "Your document has been created using a basic template. For AI-powered "
        "personalized documents, please configure the API key in settings."
    ),
}
