# =============================================================================
# core/config.py  -  Settings & Collection Registry
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Builds the one immutable configuration value the whole process shares:
#     - the Collection Registry (logical name -> external collection id),
#       read once from a JSON file (DBS_FILE, default "dbs.json")
#     - the hub location id (REAL_ESTATE_PAGE_ID)
#     - store credentials and endpoint (NOTION_TOKEN, NOTION_API_URL, ...)
#     - transport and logging knobs for the server shell
#
#   Nothing here is a module-level global.  main.py calls load_settings()
#   once and passes the result down; tests build Settings directly.
#
# ENVIRONMENT:
#   The caller is expected to have run dotenv.load_dotenv() already, so a
#   local .env file and real environment variables look the same here.
# =============================================================================

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from collections.abc import Iterator, Mapping
from typing import Optional

from core.errors import ConfigError, UnknownCollection


DEFAULT_DBS_FILE = "dbs.json"
DEFAULT_COLLECTION = "seguimientos"
DEFAULT_API_URL = "https://api.notion.com/v1"
DEFAULT_API_VERSION = "2022-06-28"

_TRUTHY = {"1", "true", "yes", "on"}


# -----------------------------------------------------------------------------
# CollectionRegistry
# -----------------------------------------------------------------------------
class CollectionRegistry(Mapping[str, str]):
    """Read-only mapping of logical collection names to external ids."""

    def __init__(self, entries: Mapping[str, str]):
        self._entries = MappingProxyType(dict(entries))

    @classmethod
    def from_file(cls, path: Path) -> "CollectionRegistry":
        """Load the registry from a JSON object of ``name -> id`` strings."""
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ConfigError(f"Collection file not found: {path}") from e
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read collection file {path}: {e}") from e

        if not isinstance(raw, dict):
            raise ConfigError(f"Collection file {path} must hold a JSON object")
        for name, collection_id in raw.items():
            if not isinstance(collection_id, str) or not collection_id.strip():
                raise ConfigError(
                    f"Collection {name!r} in {path} must map to a non-empty string id"
                )
        return cls(raw)

    def resolve(self, name: str) -> str:
        """Return the external id for ``name`` or raise UnknownCollection."""
        try:
            return self._entries[name]
        except KeyError:
            raise UnknownCollection(name, tuple(self._entries)) from None

    def names(self) -> list[str]:
        return list(self._entries)

    def __getitem__(self, name: str) -> str:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"CollectionRegistry({dict(self._entries)!r})"


# -----------------------------------------------------------------------------
# Settings
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Settings:
    """Everything the server and the operations need, fixed at startup."""

    registry: CollectionRegistry
    hub_page_id: str
    notion_token: str = field(repr=False)

    api_url: str = DEFAULT_API_URL
    api_version: str = DEFAULT_API_VERSION
    timeout: float = 30.0

    default_collection: str = DEFAULT_COLLECTION
    serialize_writes: bool = False

    # --- Transport shell ---
    host: str = "0.0.0.0"
    port: int = 3000
    transport: str = "sse"
    path: str = "/mcp"
    log_level: str = "INFO"


def _require(env: Mapping[str, str], key: str) -> str:
    value = env.get(key, "").strip()
    if not value:
        raise ConfigError(f"Missing required environment variable {key}")
    return value


def _as_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from None


def _as_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from None


def load_settings(
    env: Optional[Mapping[str, str]] = None,
    base_dir: Optional[Path] = None,
) -> Settings:
    """Build Settings from environment variables.

    Args:
        env: Variables to read (defaults to ``os.environ``).
        base_dir: Directory a relative DBS_FILE is resolved against
                  (defaults to the current working directory).

    Raises:
        ConfigError: a required variable is missing or a value is malformed.
    """
    if env is None:
        env = os.environ

    dbs_path = Path(env.get("DBS_FILE") or DEFAULT_DBS_FILE)
    if not dbs_path.is_absolute() and base_dir is not None:
        dbs_path = Path(base_dir) / dbs_path

    transport = env.get("MCP_TRANSPORT", "sse").strip().lower() or "sse"
    if transport not in ("sse", "http", "streamable-http", "stdio"):
        raise ConfigError(f"Unsupported MCP_TRANSPORT {transport!r}")

    return Settings(
        registry=CollectionRegistry.from_file(dbs_path),
        hub_page_id=_require(env, "REAL_ESTATE_PAGE_ID"),
        notion_token=_require(env, "NOTION_TOKEN"),
        api_url=(env.get("NOTION_API_URL") or DEFAULT_API_URL).rstrip("/"),
        api_version=env.get("NOTION_VERSION") or DEFAULT_API_VERSION,
        timeout=_as_float(env, "NOTION_TIMEOUT", 30.0),
        default_collection=env.get("DEFAULT_DB") or DEFAULT_COLLECTION,
        serialize_writes=env.get("SERIALIZE_WRITES", "").strip().lower() in _TRUTHY,
        host=env.get("HOST") or "0.0.0.0",
        port=_as_int(env, "PORT", 3000),
        transport=transport,
        path=env.get("MCP_PATH") or "/mcp",
        log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
    )
