"""
Runtime settings (environment variables) and logging setup.

    QRRPA_CONFIG_DIR       directory of the saved ordinance table (default ~/.qrrpa)
    QRRPA_DEFAULT_SCOPE    scope used when auto-detection fails
    QRRPA_BATCH_PAUSE_MS   pause between files in a batch
    QRRPA_LOG_LEVEL        logging level name
"""

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional

from .ordinances import DEFAULT_SCOPE

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class Settings:
    config_dir: Path = Path("~/.qrrpa").expanduser()
    default_scope: str = DEFAULT_SCOPE
    batch_pause_ms: int = 10
    log_level: str = "INFO"

    @property
    def batch_pause(self) -> float:
        return self.batch_pause_ms / 1000.0

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        try:
            pause = int(env.get("QRRPA_BATCH_PAUSE_MS", "10"))
        except ValueError:
            pause = 10
        return cls(
            config_dir=Path(env.get("QRRPA_CONFIG_DIR", "~/.qrrpa")).expanduser(),
            default_scope=env.get("QRRPA_DEFAULT_SCOPE", DEFAULT_SCOPE) or DEFAULT_SCOPE,
            batch_pause_ms=max(0, pause),
            log_level=env.get("QRRPA_LOG_LEVEL", "INFO").upper(),
        )


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """Configures root logging to stdout, plus a file when `log_file` is given."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="w", encoding="utf-8"))

    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)
        handler.close()

    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        handlers=handlers,
    )
