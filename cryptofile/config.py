# cryptofile/config.py

from __future__ import annotations
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional
from .errors import CryptoFileError

CONFIG_ENV_VAR = "CRYPTOFILE_CONFIG"
CONFIG_PATH = Path("~/.cryptofile/config.json")

DEFAULT_CONFIG: Dict[str, Any] = {
    # Toolkit
    "engine": "openssl",              # "openssl" or "native"
    "openssl_path": "openssl",
    "key_cipher": "aes256",           # cipher flag used when encrypting keys
    "process_timeout": None,          # seconds, None waits forever

    # Files
    "file_mode": 0o666,               # masked with the umask on write

    # Logging
    "log_dir": None,                  # daily log files when set
    "log_level": "INFO"
}


def config_path() -> Path:
    """
    Location of the config file, the CRYPTOFILE_CONFIG environment
    variable wins over the default in the home directory.
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(override or CONFIG_PATH).expanduser()


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Reads the JSON config over the defaults. A missing, unreadable or
    malformed file gives the defaults unchanged.
    """
    path = Path(path) if path is not None else config_path()
    if not path.exists():
        return DEFAULT_CONFIG.copy()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return DEFAULT_CONFIG.copy()

    if not isinstance(data, dict):
        return DEFAULT_CONFIG.copy()

    merged = DEFAULT_CONFIG.copy()
    for k, v in data.items():
        merged[k] = v
    return merged


def save_config(config: Dict[str, Any], path: Optional[Path] = None) -> None:
    """
    Writes the config, keeping only keys that differ from the defaults.
    """
    path = Path(path) if path is not None else config_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)

        user_written = {
            k: v for k, v in config.items()
            if k not in DEFAULT_CONFIG or v != DEFAULT_CONFIG[k]
        }

        path.write_text(json.dumps(user_written, indent=2), encoding="utf-8")
    except (OSError, TypeError) as e:
        raise CryptoFileError(f"Failed to save config: {e}")
