import json
import os
from typing import Any, Dict

BASE_URL = "https://funpay.com"

DEFAULT_CONFIG: Dict[str, Any] = {
    "golden_key": "",
    "user_agent": "",
    "base_url": BASE_URL,
    "timeout": 20,
    "log_enabled": True,
}


def get_base_dir() -> str:
    """Корень проекта, либо каталог из FUNPAY_API_HOME."""
    home = os.environ.get("FUNPAY_API_HOME")
    if home:
        return home
    return os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def get_config_path() -> str:
    return os.path.join(get_base_dir(), "config.json")


def load_settings() -> Dict[str, Any]:
    path = get_config_path()
    cfg = DEFAULT_CONFIG.copy()
    if os.path.exists(path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            # битый конфиг не должен мешать запуску: работаем на дефолтах
            return cfg
        if isinstance(data, dict):
            cfg.update(data)
    return cfg


def save_settings(cfg: Dict[str, Any]) -> None:
    path = get_config_path()
    with open(path, "w", encoding="utf-8") as f:
        json.dump(cfg, f, ensure_ascii=False, indent=2)
