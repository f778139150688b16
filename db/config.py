"""
db/config.py

Database URL resolution for the metrics store.

Settings come from the process environment first; `.env` and `.env.local`
at the project root only fill in names that are still unset.
"""

from __future__ import annotations

import os
from pathlib import Path

ENV_FILENAMES: tuple[str, ...] = (".env", ".env.local")
CLOUD_LIKE_ENVIRONMENTS = frozenset({"prod", "production", "staging", "cloud"})

_PSYCOPG_SCHEMES: tuple[tuple[str, str], ...] = (
    ("postgres://", "postgresql+psycopg://"),
    ("postgresql://", "postgresql+psycopg://"),
)


def _parse_env_line(raw_line: str) -> tuple[str, str] | None:
    line = raw_line.strip()
    if line.startswith("export "):
        line = line[len("export ") :].lstrip()
    if not line or line.startswith("#") or "=" not in line:
        return None

    key, value = line.split("=", 1)
    key = key.strip()
    if not key:
        return None
    return key, value.strip().strip('"').strip("'")


def load_env_files(project_root: Path | None = None) -> list[Path]:
    """
    Read KEY=VALUE pairs from the env files under `project_root`.

    Returns the paths that existed and were read.
    """

    root = project_root or Path(__file__).resolve().parents[1]
    loaded: list[Path] = []
    for env_path in (root / filename for filename in ENV_FILENAMES):
        if not env_path.is_file():
            continue
        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            parsed = _parse_env_line(raw_line)
            if parsed is not None:
                os.environ.setdefault(*parsed)
        loaded.append(env_path)
    return loaded


def normalize_postgres_url(url: str) -> str:
    """Rewrite bare postgres schemes to the psycopg driver."""

    for scheme, driver_scheme in _PSYCOPG_SCHEMES:
        if url.startswith(scheme):
            return driver_scheme + url[len(scheme) :]
    return url


def _candidate_urls() -> list[str | None]:
    environment = os.getenv("ENVIRONMENT", "local").strip().lower()
    candidates = [os.getenv("DATABASE_URL")]
    if environment in CLOUD_LIKE_ENVIRONMENTS:
        candidates.append(os.getenv("CLOUD_DATABASE_URL"))
    candidates.append(os.getenv("LOCAL_DATABASE_URL"))
    return candidates


def resolve_database_url() -> str:
    """
    Return the metrics database URL.

    DATABASE_URL wins; CLOUD_DATABASE_URL is only consulted when ENVIRONMENT
    names a cloud-like deployment; LOCAL_DATABASE_URL is the last resort.
    """

    load_env_files()
    for url in _candidate_urls():
        if url:
            return normalize_postgres_url(url)

    raise RuntimeError(
        "No metrics database URL configured. Set DATABASE_URL, or configure "
        "LOCAL_DATABASE_URL / CLOUD_DATABASE_URL."
    )
