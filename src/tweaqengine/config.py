from __future__ import annotations

from dataclasses import asdict, dataclass
import json
from pathlib import Path
import tempfile
from typing import Any

CONFIG_DIR = Path.home() / ".tweaqengine"
CONFIG_PATH = CONFIG_DIR / "config.json"


@dataclass(slots=True)
class EngineConfig:
    confidence_floor: float = 0.5
    alternatives_cap: int = 5
    oracle_timeout_sec: float = 20.0
    publish_timeout_sec: float = 60.0
    singular_top_k: int = 1
    plural_top_k: int = 2
    store_dir: str = ""

    def resolved_store_dir(self) -> Path:
        return Path(self.store_dir).expanduser() if self.store_dir else CONFIG_DIR


def _as_float(value: Any, default: float, *, low: float, high: float | None = None) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number < low or (high is not None and number > high):
        return default
    return number


def _as_int(value: Any, default: int, *, low: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number >= low else default


def load_engine_config(config_path: Path | None = None) -> EngineConfig:
    path = config_path or CONFIG_PATH
    defaults = EngineConfig()
    if not path.exists() or not path.is_file():
        return defaults

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, TypeError):
        return defaults

    if not isinstance(payload, dict):
        return defaults

    return EngineConfig(
        confidence_floor=_as_float(payload.get("confidence_floor"), defaults.confidence_floor, low=0.0, high=1.0),
        alternatives_cap=_as_int(payload.get("alternatives_cap"), defaults.alternatives_cap, low=0),
        oracle_timeout_sec=_as_float(payload.get("oracle_timeout_sec"), defaults.oracle_timeout_sec, low=0.1),
        publish_timeout_sec=_as_float(payload.get("publish_timeout_sec"), defaults.publish_timeout_sec, low=0.1),
        singular_top_k=_as_int(payload.get("singular_top_k"), defaults.singular_top_k, low=1),
        plural_top_k=_as_int(payload.get("plural_top_k"), defaults.plural_top_k, low=1),
        store_dir=str(payload.get("store_dir", "") or ""),
    )


def save_engine_config(config: EngineConfig, config_path: Path | None = None) -> tuple[bool, str | None]:
    path = config_path or CONFIG_PATH

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        return False, f"Could not create config folder: {exc}"

    payload = json.dumps(asdict(config), ensure_ascii=True, indent=2, sort_keys=True)
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            handle.write(payload)
            handle.flush()
            temp_path = Path(handle.name)

        if temp_path is None:
            return False, "Could not create temporary config file."
        temp_path.replace(path)
    except OSError as exc:
        if temp_path and temp_path.exists():
            temp_path.unlink(missing_ok=True)
        return False, f"Could not write engine config: {exc}"

    return True, None
