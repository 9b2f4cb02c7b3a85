"""Load settings from config/settings.yaml and the environment."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from job_assistant.log import get_logger
from job_assistant.resume import load_resume_text

log = get_logger(__name__)

load_dotenv()

PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = PROJECT_ROOT / "config"
SETTINGS_PATH: Path = CONFIG_DIR / "settings.yaml"
DATA_DIR: Path = PROJECT_ROOT / "data"
RESUME_DIR: Path = PROJECT_ROOT / "resume"

DEFAULT_BUDGET = 100
DEFAULT_MODEL = "gpt-4o"
DEFAULT_CRITERIA = """Please consider:
1. Required experience level
2. Skills required
3. Job responsibilities
4. Company reputation
5. Overall job quality"""


@dataclass
class Settings:
    api_key: str = ""
    criteria: str = DEFAULT_CRITERIA
    resume: str = ""
    budget: int = DEFAULT_BUDGET
    model: str = DEFAULT_MODEL
    base_url: str = ""

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key) and self.api_key != "0"


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def ensure_dirs() -> None:
    for d in (CONFIG_DIR, DATA_DIR, RESUME_DIR):
        d.mkdir(parents=True, exist_ok=True)


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        log.warning("Ignoring %s: expected a mapping", path.name)
        return {}
    return data


def _coerce_budget(value: Any) -> int:
    try:
        budget = int(value)
    except (TypeError, ValueError):
        log.warning("Invalid max_jobs_to_process %r, using %d", value, DEFAULT_BUDGET)
        return DEFAULT_BUDGET
    if budget <= 0:
        log.warning("max_jobs_to_process must be positive, using %d", DEFAULT_BUDGET)
        return DEFAULT_BUDGET
    return budget


def load_settings(path: Path | None = None, resume_dir: Path | None = None) -> Settings:
    data = _read_yaml(path or SETTINGS_PATH)

    resume = str(data.get("resume") or "").strip()
    if not resume:
        resume = load_resume_text(resume_dir or RESUME_DIR)

    return Settings(
        api_key=get_env("OPENAI_API_KEY") or str(data.get("api_key") or "").strip(),
        criteria=str(data.get("criteria") or "").strip() or DEFAULT_CRITERIA,
        resume=resume,
        budget=_coerce_budget(data.get("max_jobs_to_process", DEFAULT_BUDGET)),
        model=get_env("OPENAI_MODEL") or str(data.get("model") or DEFAULT_MODEL),
        base_url=get_env("OPENAI_BASE_URL") or str(data.get("base_url") or ""),
    )


def save_criteria(criteria: str, path: Path | None = None) -> None:
    target = path or SETTINGS_PATH
    data = _read_yaml(target)
    data["criteria"] = criteria
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
    log.info("Saved criteria → %s", target.name)
