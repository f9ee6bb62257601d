"""glwiki configuration management.

Handles persistent settings stored in ~/.glwiki/config.json
(or $GLWIKI_HOME/config.json).
"""

import json
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional


# Default configuration values
DEFAULT_GITLAB_URL = "https://gitlab.com"
DEFAULT_THEME = "textual-dark"
DEFAULT_PROJECTS_PER_PAGE = 100
DEFAULT_GROUP_PAGE_LIMIT = 10  # listGroups never walks past this many pages
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_EXPORT_FORMAT = "yaml"  # yaml, json

HOME_ENV_VAR = "GLWIKI_HOME"


@dataclass
class ViewState:
    """Persistent view state for the dashboard."""

    # Search query when the dashboard was closed
    last_query: str = ""


@dataclass
class GlwikiConfig:
    """glwiki application configuration."""

    # Remote
    gitlab_url: str = DEFAULT_GITLAB_URL
    projects_per_page: int = DEFAULT_PROJECTS_PER_PAGE
    group_page_limit: int = DEFAULT_GROUP_PAGE_LIMIT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES

    # Appearance
    theme: str = DEFAULT_THEME

    # Diagnostics
    log_level: str = DEFAULT_LOG_LEVEL

    # Export preferences
    export_format: str = DEFAULT_EXPORT_FORMAT

    # Storage; None means the sqlite file next to the config
    database_url: Optional[str] = None

    view_state: Optional[ViewState] = None

    @classmethod
    def get_config_dir(cls) -> Path:
        """Directory holding the config file and the default database."""
        override = os.environ.get(HOME_ENV_VAR)
        if override:
            return Path(override).expanduser()
        return Path.home() / ".glwiki"

    @classmethod
    def get_config_path(cls) -> Path:
        """Get the path to the config file."""
        return cls.get_config_dir() / "config.json"

    @classmethod
    def load(cls) -> "GlwikiConfig":
        """Load configuration from file, or return defaults if not found."""
        config_path = cls.get_config_path()

        if config_path.exists():
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                # Only use known fields to avoid issues with old config versions
                known_fields = {f.name for f in cls.__dataclass_fields__.values()}
                filtered_data = {k: v for k, v in data.items() if k in known_fields}

                view_state_data = filtered_data.get("view_state")
                if isinstance(view_state_data, dict):
                    view_state_fields = {f.name for f in ViewState.__dataclass_fields__.values()}
                    filtered_data["view_state"] = ViewState(
                        **{k: v for k, v in view_state_data.items() if k in view_state_fields}
                    )
                elif view_state_data is not None:
                    filtered_data["view_state"] = None

                return cls(**filtered_data)
            except (json.JSONDecodeError, TypeError, ValueError, AttributeError):
                # Invalid config, return defaults
                pass

        return cls()

    def save(self) -> None:
        """Save configuration to file."""
        config_path = self.get_config_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(asdict(self), f, indent=2)

    def reset(self) -> None:
        """Reset configuration to defaults."""
        defaults = GlwikiConfig()
        for name in self.__dataclass_fields__:
            setattr(self, name, getattr(defaults, name))

    def get_database_url(self) -> str:
        """Database URL for the durable store."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.get_config_dir() / 'glwiki.db'}"

    def save_view_state(self, last_query: str = "") -> None:
        """Save the dashboard view state for restoration on next launch."""
        self.view_state = ViewState(last_query=last_query)
        self.save()


# Available options for settings
AVAILABLE_THEMES = [
    ("textual-dark", "Textual Dark"),
    ("textual-light", "Textual Light"),
    ("nord", "Nord"),
    ("gruvbox", "Gruvbox"),
    ("dracula", "Dracula"),
    ("tokyo-night", "Tokyo Night"),
]

EXPORT_FORMAT_OPTIONS = [
    ("yaml", "YAML (.yaml)"),
    ("json", "JSON (.json)"),
]
