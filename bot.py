import asyncio
import os
import sqlite3

import discord
from discord.ext import commands

from config.defaults import DEFAULT_DB_PATH
from config.defaults import DEFAULT_LLM_BACKEND
from config.defaults import DEFAULT_MODEL_REGISTRY
from config.defaults import DEFAULT_OLLAMA_HOST
from config.defaults import DEFAULT_OPENAI_BASE_URL
from config.defaults import DEFAULT_REQUEST_TIMEOUT_SECONDS
from config.defaults import DISCORD_MAX_MESSAGE_LEN
from config.defaults import LLM_BACKENDS
from config.defaults import MODEL_REGISTRY_KINDS
from controller.consent_store import ConsentGate
from controller.eula import load_eula
from controller.model_registry import build_model_registry
from db.migrate import apply_sqlite_migrations
from ingestion.service import AttachmentFetcher
from llm.backend import build_backend
from memory.service import ConversationService
from misc.discord_gates import interaction_user_is_admin
from misc.eula_panel import build_eula_panel
from misc.runtime_wiring import wire_bot_runtime
from misc.system_stats import collect_snapshot

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# =========================
# ENV
# =========================
DISCORD_TOKEN = os.getenv("DISCORD_TOKEN")

DB_PATH = os.getenv("OLLACORD_DB_PATH", DEFAULT_DB_PATH)

LLM_BACKEND = os.getenv("OLLACORD_LLM_BACKEND", DEFAULT_LLM_BACKEND).strip().lower()
if LLM_BACKEND not in LLM_BACKENDS:
    print(f"[CFG] invalid OLLACORD_LLM_BACKEND={LLM_BACKEND!r}; falling back to {DEFAULT_LLM_BACKEND!r}")
    LLM_BACKEND = DEFAULT_LLM_BACKEND

OLLAMA_HOST = os.getenv("OLLAMA_HOST", DEFAULT_OLLAMA_HOST).strip() or DEFAULT_OLLAMA_HOST
OPENAI_BASE_URL = os.getenv("OLLACORD_OPENAI_BASE_URL", DEFAULT_OPENAI_BASE_URL).strip() or DEFAULT_OPENAI_BASE_URL
# Local OpenAI-compatible servers ignore the key, but the client insists on one.
OPENAI_API_KEY = os.getenv("OLLACORD_OPENAI_API_KEY", "").strip() or "ollama"

try:
    REQUEST_TIMEOUT_SECONDS = float(
        os.getenv("OLLACORD_REQUEST_TIMEOUT_SECONDS", str(DEFAULT_REQUEST_TIMEOUT_SECONDS)).strip()
    )
except ValueError:
    REQUEST_TIMEOUT_SECONDS = DEFAULT_REQUEST_TIMEOUT_SECONDS
if REQUEST_TIMEOUT_SECONDS <= 0:
    REQUEST_TIMEOUT_SECONDS = DEFAULT_REQUEST_TIMEOUT_SECONDS

MODEL_REGISTRY = os.getenv("OLLACORD_MODEL_REGISTRY", DEFAULT_MODEL_REGISTRY).strip().lower()
if MODEL_REGISTRY not in MODEL_REGISTRY_KINDS:
    print(f"[CFG] invalid OLLACORD_MODEL_REGISTRY={MODEL_REGISTRY!r}; falling back to {DEFAULT_MODEL_REGISTRY!r}")
    MODEL_REGISTRY = DEFAULT_MODEL_REGISTRY

SYNC_COMMANDS = os.getenv("OLLACORD_SYNC_COMMANDS", "1").strip() == "1"

EULA_PATH = os.getenv("OLLACORD_EULA_PATH", os.path.join(BASE_DIR, "config", "eula.yml"))
MIGRATIONS_DIR = os.path.join(BASE_DIR, "migrations")

print(
    f"[CFG] db={DB_PATH} backend={LLM_BACKEND} "
    f"endpoint={OLLAMA_HOST if LLM_BACKEND == 'ollama' else OPENAI_BASE_URL} "
    f"timeout_s={REQUEST_TIMEOUT_SECONDS} registry={MODEL_REGISTRY} sync_commands={SYNC_COMMANDS}"
)


def open_database(path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")
    apply_sqlite_migrations(conn, MIGRATIONS_DIR)
    return conn


def build_bot() -> tuple[commands.Bot, AttachmentFetcher]:
    eula, eula_warning = load_eula(EULA_PATH)
    print(f"[CFG] eula={eula.version} path={EULA_PATH}")
    if eula_warning:
        print(f"[CFG] {eula_warning}")

    db_conn = open_database(DB_PATH)
    db_lock = asyncio.Lock()

    consent_gate = ConsentGate(db_lock=db_lock, db_conn=db_conn)
    model_registry = build_model_registry(MODEL_REGISTRY, db_lock=db_lock, db_conn=db_conn)
    backend = build_backend(
        LLM_BACKEND,
        ollama_host=OLLAMA_HOST,
        openai_base_url=OPENAI_BASE_URL,
        openai_api_key=OPENAI_API_KEY,
        timeout_seconds=REQUEST_TIMEOUT_SECONDS,
    )
    fetcher = AttachmentFetcher(timeout_seconds=REQUEST_TIMEOUT_SECONDS)

    conversation_service = ConversationService(
        db_lock=db_lock,
        db_conn=db_conn,
        consent_gate=consent_gate,
        model_registry=model_registry,
        backend=backend,
        fetcher=fetcher,
        timeout_seconds=REQUEST_TIMEOUT_SECONDS,
    )

    def eula_panel_factory():
        return build_eula_panel(eula=eula, consent_gate=consent_gate)

    bot = commands.Bot(command_prefix=commands.when_mentioned, intents=discord.Intents.default())
    wire_bot_runtime(
        bot,
        conversation_service=conversation_service,
        eula=eula,
        eula_panel_factory=eula_panel_factory,
        collect_snapshot=collect_snapshot,
        user_is_admin=interaction_user_is_admin,
        max_message_len=DISCORD_MAX_MESSAGE_LEN,
        sync_commands=SYNC_COMMANDS,
        backend_name=LLM_BACKEND,
        registry_kind=MODEL_REGISTRY,
    )
    return bot, fetcher


async def main() -> None:
    if not DISCORD_TOKEN:
        raise RuntimeError("Missing DISCORD_TOKEN env var")

    bot, fetcher = build_bot()
    try:
        async with bot:
            await bot.start(DISCORD_TOKEN)
    finally:
        await fetcher.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
