from __future__ import annotations

DEFAULT_DB_PATH = "ollacord.db"
DEFAULT_LLM_BACKEND = "ollama"
DEFAULT_OLLAMA_HOST = "http://127.0.0.1:11434"
DEFAULT_OPENAI_BASE_URL = "http://127.0.0.1:11434/v1"
DEFAULT_REQUEST_TIMEOUT_SECONDS = 600.0
DEFAULT_MODEL_REGISTRY = "sqlite"

LLM_BACKENDS = {"ollama", "openai"}
MODEL_REGISTRY_KINDS = {"sqlite", "memory"}

MAX_ATTACHMENT_BYTES = 1_073_741_824

DISCORD_MAX_MESSAGE_LEN = 1900  # keep under 2000 hard limit

# Guild key for direct-message channels, which have no guild id.
DM_GUILD_KEY = "dm"

ASSISTANT_SENDER_ID = "assistant"
ASSISTANT_SENDER_NAME = "AI"
EMPTY_REPLY_PLACEHOLDER = "(no output)"
EXPORT_FILENAME = "conversation.json"
