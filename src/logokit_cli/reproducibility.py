from __future__ import annotations

import subprocess
from importlib import metadata
from pathlib import Path

DIST_NAME = "logokit"


def get_pipeline_version() -> str:
    """Get pipeline version from installed package metadata, falling back to git."""
    try:
        return metadata.version(DIST_NAME)
    except metadata.PackageNotFoundError:
        pass

    try:
        result = subprocess.run(
            ["git", "describe", "--tags", "--always", "--dirty"],
            capture_output=True,
            text=True,
            timeout=5,
            cwd=Path(__file__).parent,
        )
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError):
        pass

    return "unknown"
