"""Configuration for confluence-search."""

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from loguru import logger

# Settings file location. First file found is used.
SETTINGS_FILES: list[Path] = [
    Path("~/.config/confluence-search/settings.json").expanduser(),
    Path("~/.confluence-search.json").expanduser(),
]

# Confluence personal access token. First file found is used; optional.
CONFLUENCE_TOKEN_FILES: list[Path] = [
    Path("~/.config/confluence-search/confluence-token.txt").expanduser(),
    Path("~/.config/secret/confluence-token.txt").expanduser(),
]

# OpenAI API key, used when not given in settings or environment.
OPENAI_KEY_FILES: list[Path] = [
    Path("~/.config/confluence-search/openai-key.txt").expanduser(),
    Path("~/.config/secret/openai-key.txt").expanduser(),
]

DEFAULT_DATA_DIR = Path("~/.local/share/confluence-search").expanduser()
DEFAULT_RESULTS_PER_REQUEST = 75
DEFAULT_API_ENDPOINT = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-4o"


@dataclass(frozen=True)
class Settings:
    """Persisted user configuration."""

    base_url: str = ""
    results_per_request: int = DEFAULT_RESULTS_PER_REQUEST
    enable_summaries: bool = True
    openai_api_key: str = ""
    api_endpoint: str = DEFAULT_API_ENDPOINT
    model: str = DEFAULT_MODEL
    custom_user_prompt: str = ""
    fetch_retries: int = 0
    data_dir: Path = DEFAULT_DATA_DIR

    @property
    def summaries_enabled(self) -> bool:
        """Summaries need both the toggle and an API key."""
        return self.enable_summaries and bool(self.openai_api_key)


def read_first_token(paths: list[Path]) -> str | None:
    """Return the stripped contents of the first readable file, or None."""
    for path in paths:
        try:
            token = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            continue
        if token:
            logger.debug("Read token from {}", path)
            return token
    return None


def _find_settings_file() -> Path | None:
    for candidate in SETTINGS_FILES:
        if candidate.is_file():
            return candidate
    return None


def load_settings(path: Path | None = None) -> Settings:
    """Load settings: defaults, then the JSON file, then environment overrides."""
    raw: dict[str, Any] = {}
    settings_path = path or _find_settings_file()
    if settings_path is not None:
        with open(settings_path, encoding="utf-8") as f:
            raw = json.load(f)
        logger.debug("Loaded settings from {}", settings_path)

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(raw) - known)
    if unknown:
        logger.warning("Ignoring unknown settings: {}", ", ".join(unknown))
    values = {k: v for k, v in raw.items() if k in known}

    if base_url := os.environ.get("CONFLUENCE_BASE_URL"):
        values["base_url"] = base_url
    if api_key := os.environ.get("OPENAI_API_KEY"):
        values["openai_api_key"] = api_key
    if data_dir := os.environ.get("CONFLUENCE_SEARCH_DATA_DIR"):
        values["data_dir"] = data_dir

    if not values.get("openai_api_key"):
        values["openai_api_key"] = read_first_token(OPENAI_KEY_FILES) or ""

    per_request = values.get("results_per_request", DEFAULT_RESULTS_PER_REQUEST)
    if not isinstance(per_request, int) or isinstance(per_request, bool) or per_request <= 0:
        logger.warning(
            "Invalid results_per_request {!r}, using {}", per_request, DEFAULT_RESULTS_PER_REQUEST
        )
        values["results_per_request"] = DEFAULT_RESULTS_PER_REQUEST

    if "data_dir" in values:
        values["data_dir"] = Path(values["data_dir"]).expanduser()

    return Settings(**values)
