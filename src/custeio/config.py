from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import platformdirs
import yaml
from dotenv import load_dotenv

APP_NAME = "custeio-nfe"

# Shared charges apportioned across line items: (item field, ICMSTot tag)
CHARGE_FIELDS = (
    ("freight", "vFrete"),
    ("insurance", "vSeg"),
    ("discount", "vDesc"),
    ("other", "vOutro"),
)

DEFAULT_TAX_REGIME = "lucro_real"
DEFAULT_CONVERSION_FACTOR = "1"
DEFAULT_MAX_WORKERS = 4

SETTINGS_FILE = "settings.yaml"

SETTINGS_TEMPLATE = """\
# Regime tributario padrao: lucro_real | simples_nacional
tax_regime: lucro_real

# Fator de conversao padrao aplicado ao custo unitario final
conversion_factor: "1"

# Numero de arquivos XML processados em paralelo
max_workers: 4
"""


def _resolve_config_dir_for_dotenv() -> Path | None:
    """Resolve config dir for .env loading without depending on env vars from .env itself.

    Returns None if only platformdirs would resolve and the dir does not exist.
    """
    from_env = os.environ.get("CUSTEIO_CONFIG_DIR")
    if from_env:
        return Path(from_env)
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / "config"
    if candidate.is_dir():
        return candidate
    pd = Path(platformdirs.user_config_dir(APP_NAME))
    if pd.is_dir():
        return pd
    return None


# Load .env: cwd first (highest priority), then config dir (won't override)
load_dotenv()
_cfg_dir = _resolve_config_dir_for_dotenv()
if _cfg_dir is not None:
    load_dotenv(_cfg_dir / ".env")


def _resolve_dir(env_var: str, default_subdir: str) -> Path:
    """Resolve a directory from env var, repo layout, or platform default.

    Priority: 1) env var, 2) dev repo layout, 3) platformdirs user directory.
    """
    from_env = os.environ.get(env_var)
    if from_env:
        return Path(from_env)
    # Development layout: src/custeio/config.py -> ../../.. = project root
    project_root = Path(__file__).resolve().parent.parent.parent
    candidate = project_root / default_subdir
    if candidate.is_dir():
        return candidate
    return Path(platformdirs.user_config_dir(APP_NAME))


def get_config_dir() -> Path:
    """Resolve config directory. Re-evaluated on each call to pick up env changes."""
    return _resolve_dir("CUSTEIO_CONFIG_DIR", "config")


def load_yaml(path: Path) -> dict:
    """Load and parse a YAML file, returning the top-level dict (empty for blank files)."""
    return yaml.safe_load(path.read_text()) or {}


@dataclass(frozen=True)
class Settings:
    """Runtime defaults for the costing engine and CLI."""

    tax_regime: str = DEFAULT_TAX_REGIME
    conversion_factor: str = DEFAULT_CONVERSION_FACTOR
    max_workers: int = DEFAULT_MAX_WORKERS

    @classmethod
    def from_dict(cls, d: dict) -> Settings:
        """Create Settings from a YAML-loaded dict, applying defaults for missing keys.

        A blank or non-integer max_workers falls back to the default.
        """
        raw = d.get("max_workers")
        try:
            workers = DEFAULT_MAX_WORKERS if raw in (None, "") else int(raw)
        except (TypeError, ValueError):
            workers = DEFAULT_MAX_WORKERS
        return cls(
            tax_regime=str(d.get("tax_regime", DEFAULT_TAX_REGIME)),
            conversion_factor=str(d.get("conversion_factor", DEFAULT_CONVERSION_FACTOR)),
            max_workers=max(1, workers),
        )


def load_settings() -> Settings:
    """Load settings.yaml from the config dir, then apply env var overrides.

    A missing file yields the defaults.
    """
    path = get_config_dir() / SETTINGS_FILE
    data = load_yaml(path) if path.is_file() else {}
    regime = os.environ.get("CUSTEIO_TAX_REGIME")
    if regime:
        data["tax_regime"] = regime
    workers = os.environ.get("CUSTEIO_MAX_WORKERS")
    if workers:
        data["max_workers"] = workers
    return Settings.from_dict(data)


def write_settings_template() -> Path | None:
    """Create settings.yaml in the config dir. Returns None if it already exists."""
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)
    path = config_dir / SETTINGS_FILE
    if path.exists():
        return None
    tmp = path.with_suffix(".tmp")
    tmp.write_text(SETTINGS_TEMPLATE)
    os.replace(tmp, path)
    return path
