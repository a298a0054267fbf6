from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


logger = logging.getLogger(__name__)

TEST_BASE_URL = 'https://test.api.amadeus.com'
PRODUCTION_BASE_URL = 'https://api.amadeus.com'


def project_root_dir() -> Path:
    # For dev runs, keep config.env next to the source files.
    return Path(__file__).resolve().parent


def _candidate_dotenv_paths() -> list[Path]:
    """Return candidate locations for config.env.

    Precedence rule (first existing file wins):
    1) next to the sources
    2) current working directory
    """
    candidates: list[Path] = [project_root_dir() / 'config.env']
    try:
        candidates.append(Path.cwd() / 'config.env')
    except OSError:
        pass

    out: list[Path] = []
    seen: set[str] = set()
    for p in candidates:
        key = str(p.resolve())
        if key in seen:
            continue
        seen.add(key)
        out.append(p)
    return out


def dotenv_path() -> Path:
    """Return the first existing config.env, otherwise the dev default."""
    for p in _candidate_dotenv_paths():
        if p.is_file():
            return p
    return project_root_dir() / 'config.env'


def _is_placeholder(value: str) -> bool:
    v = (value or '').strip()
    if not v:
        return True
    return v.lower() in {'x', 'y', 'your_client_id', 'your_client_secret', 'your_api_key',
                         'your_api_secret', 'placeholder', 'example', 'changeme'}


def _env_first(*names: str) -> str:
    for name in names:
        value = (os.getenv(name) or '').strip()
        if value:
            return value
    return ''


def load_dotenv_once() -> Optional[Path]:
    """Load config.env if present.

    Values from the file only override the process environment when the
    credentials there are missing or placeholders.
    """
    env_path = dotenv_path()
    if not env_path.is_file():
        return None

    current_id = _env_first('AMADEUS_CLIENT_ID', 'AMADEUS_API_KEY')
    current_secret = _env_first('AMADEUS_CLIENT_SECRET', 'AMADEUS_API_SECRET')
    should_override = _is_placeholder(current_id) or _is_placeholder(current_secret)

    load_dotenv(dotenv_path=str(env_path), override=should_override)
    return env_path


@dataclass(frozen=True)
class LoadedConfig:
    amadeus_client_id: str
    amadeus_client_secret: str
    loaded_from: Optional[Path]
    api_env: str = 'test'

    @property
    def has_amadeus(self) -> bool:
        return bool(self.amadeus_client_id and self.amadeus_client_secret)

    @property
    def base_url(self) -> str:
        return PRODUCTION_BASE_URL if self.api_env == 'production' else TEST_BASE_URL


def load_config() -> LoadedConfig:
    """Load credentials from environment variables and/or config.env.

    Recognised keys:
      - AMADEUS_CLIENT_ID (alias AMADEUS_API_KEY)
      - AMADEUS_CLIENT_SECRET (alias AMADEUS_API_SECRET)
      - AMADEUS_API_ENV=test|production

    Called on every token refresh, so edits to the environment are picked up
    without a restart.
    """
    loaded_from = load_dotenv_once()

    aid = _env_first('AMADEUS_CLIENT_ID', 'AMADEUS_API_KEY')
    asec = _env_first('AMADEUS_CLIENT_SECRET', 'AMADEUS_API_SECRET')
    api_env = (os.getenv('AMADEUS_API_ENV') or 'test').strip().lower()

    # Treat placeholder values as "not configured".
    if _is_placeholder(aid):
        if aid:
            logger.warning('AMADEUS_CLIENT_ID contains a placeholder value')
        aid = ''
    if _is_placeholder(asec):
        if asec:
            logger.warning('AMADEUS_CLIENT_SECRET contains a placeholder value')
        asec = ''

    return LoadedConfig(
        amadeus_client_id=aid,
        amadeus_client_secret=asec,
        loaded_from=loaded_from,
        api_env=api_env,
    )


def _mask(s: str) -> str:
    if not s:
        return ''
    if len(s) <= 6:
        return '*' * len(s)
    return f"{s[:3]}***{s[-3:]}"


def config_diagnostics() -> str:
    """Human-readable diagnostics for config/env loading (no secrets leaked)."""
    cfg = load_config()

    lines = []
    lines.append(f"CWD: {Path.cwd()}")
    lines.append(f"Resolved config.env: {dotenv_path()}")
    lines.append("Candidates searched:")
    for p in _candidate_dotenv_paths():
        lines.append(f"  - {p} (exists={p.is_file()})")

    lines.append(f"Loaded from: {cfg.loaded_from}")
    lines.append(f"API environment: {cfg.api_env} ({cfg.base_url})")
    lines.append(f"AMADEUS_CLIENT_ID: {_mask(cfg.amadeus_client_id)}")
    lines.append(f"AMADEUS_CLIENT_SECRET: {_mask(cfg.amadeus_client_secret)}")
    return "\n".join(lines)


def config_help_text() -> str:
    return (
        'No Amadeus credentials configured. Create a config.env file containing:\n\n'
        '  AMADEUS_CLIENT_ID=...\n'
        '  AMADEUS_CLIENT_SECRET=...\n'
        '  AMADEUS_API_ENV=test\n\n'
        f'config.env location (first found): {dotenv_path()}\n'
    )
