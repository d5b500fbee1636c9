"""
Central configuration for the Blockd engine.
All values can be overridden via environment variables or a local config.json.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

_ROOT = Path(__file__).parent.parent
_CONFIG_FILE = _ROOT / "config.json"


@dataclass
class Config:
    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8766
    log_level: str = "INFO"

    # Storage
    data_dir: Path = field(default_factory=lambda: _ROOT / "data")
    store_db: str = "blockd.db"

    # Time tracking
    flush_interval_s: int = 30               # periodic progress save
    usage_retention_days: int = 30           # older days are dropped on start

    # Blocking
    block_page_url: str = "chrome-extension://blockd/blocked-redirect.html"
    challenge_ttl_s: int = 600               # pending challenges expire after this

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)

    @classmethod
    def load(cls) -> "Config":
        cfg = cls()
        if _CONFIG_FILE.exists():
            overrides = json.loads(_CONFIG_FILE.read_text())
            for k, v in overrides.items():
                if hasattr(cfg, k):
                    setattr(cfg, k, v)
        # environment variable overrides (BLOCKD_*)
        for k in cfg.__dataclass_fields__:  # type: ignore[attr-defined]
            env_key = f"BLOCKD_{k.upper()}"
            if env_key in os.environ:
                setattr(cfg, k, type(getattr(cfg, k))(os.environ[env_key]))
        cfg.data_dir = Path(cfg.data_dir)
        cfg.data_dir.mkdir(parents=True, exist_ok=True)
        return cfg


# Module-level singleton
config = Config.load()
