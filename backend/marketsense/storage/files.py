"""Low-level file helpers shared by the stores.

Every write goes through a tempfile in the destination directory followed by a
rename, so a crash mid-write leaves the previous file intact.
"""

import json
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any
from uuid import uuid4

import yaml

from marketsense.config import Settings, get_settings

logger = logging.getLogger(__name__)


# ============================================================================
# Paths
# ============================================================================


def get_data_dir(settings: Settings | None = None) -> Path:
    """Get the data directory path from settings."""
    settings = settings or get_settings()
    data_dir = settings.data_dir

    if not data_dir.exists():
        raise FileNotFoundError(
            f"Data directory not found: {data_dir}. "
            "Run 'python -m marketsense init' to create it."
        )

    return data_dir


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


# ============================================================================
# Atomic writes
# ============================================================================


def _atomic_write(path: Path, suffix: str, dump) -> None:
    ensure_dir(path.parent)
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            delete=False,
            suffix=suffix,
            encoding="utf-8",
        ) as temp_file:
            dump(temp_file)
            temp_path = Path(temp_file.name)

        shutil.move(str(temp_path), str(path))
        logger.debug(f"Wrote {path}")

    except Exception as e:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        logger.error(f"Failed to write {path}: {e}")
        raise


def write_json_atomic(path: Path, data: Any) -> None:
    """Atomically write ``data`` as pretty-printed JSON."""
    _atomic_write(
        path,
        ".json",
        lambda f: json.dump(data, f, indent=2, ensure_ascii=False, default=str),
    )


def write_yaml_atomic(path: Path, data: Any) -> None:
    """Atomically write ``data`` as YAML, preserving key order."""
    _atomic_write(
        path,
        ".yaml",
        lambda f: yaml.dump(
            data, f, default_flow_style=False, allow_unicode=True, sort_keys=False
        ),
    )


def read_json(path: Path, default: Any = None) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        logger.error(f"Corrupted JSON in {path}: {e}")
        raise


def read_yaml(path: Path) -> Any:
    if not path.exists():
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Corrupted YAML in {path}: {e}")
        raise


# ============================================================================
# ID generation
# ============================================================================


def generate_requirement_id() -> str:
    """Generate unique requirement ID."""
    return f"req_{uuid4().hex[:8]}"


def generate_query_id() -> str:
    return f"qry_{uuid4().hex[:8]}"


def generate_source_id() -> str:
    return f"src_{uuid4().hex[:8]}"


def generate_content_id() -> str:
    return f"cnt_{uuid4().hex[:8]}"


def generate_analysis_id() -> str:
    return f"mkt_{uuid4().hex[:8]}"


def generate_run_id() -> str:
    """Generate unique pipeline run ID."""
    return f"run_{uuid4().hex[:8]}"
