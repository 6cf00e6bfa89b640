"""Build metadata exposed at /healthz.

APP_VERSION and GIT_COMMIT are set via environment variables in CI; on
Render, RENDER_GIT_COMMIT is used when GIT_COMMIT is unset. For local
development GIT_COMMIT falls back to reading from git directly.
"""

import os
import subprocess

COMMIT_ENV_VARS = ("GIT_COMMIT", "RENDER_GIT_COMMIT")

SHORT_SHA_LENGTH = 7


def _git_short_sha() -> str:
    """Read short SHA from git for local development."""
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"],  # noqa: S607
            text=True,
            stderr=subprocess.DEVNULL,
        ).strip()
    except (FileNotFoundError, subprocess.CalledProcessError):  # fmt: skip
        return "dev"


def resolve_commit() -> str:
    for name in COMMIT_ENV_VARS:
        value = os.environ.get(name)
        if value:
            return value[:SHORT_SHA_LENGTH]
    return _git_short_sha()


APP_VERSION: str = os.environ.get("APP_VERSION", "dev")
GIT_COMMIT: str = resolve_commit()
