"""
Engine timing configuration.

Values are read from the environment (a `.env` file at the project root is
loaded first). All durations are in seconds.

- AUTOSAVE_DELAY_SECONDS: quiet window before a draft is written (default 5)
- SELLER_POLL_SECONDS: refresh interval of a seller's own-sales view (default 30)
- MANAGER_POLL_SECONDS: refresh interval of the cross-seller view (default 10)
- DASHBOARD_POLL_SECONDS: refresh interval of the dashboard summary (default 60)
- REGRESSION_ALERT_RESET: "true" clears the regression-alert marker when a
  Sale is re-approved, allowing a later regression to alert again (default false)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _positive_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be > 0, got {value}")
    return value


@dataclass(frozen=True, slots=True)
class EngineSettings:
    autosave_delay: float = 5.0
    seller_poll_interval: float = 30.0
    manager_poll_interval: float = 10.0
    dashboard_poll_interval: float = 60.0
    regression_alert_reset: bool = False

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "EngineSettings":
        env = os.environ if env is None else env
        return cls(
            autosave_delay=_positive_float(env, "AUTOSAVE_DELAY_SECONDS", 5.0),
            seller_poll_interval=_positive_float(env, "SELLER_POLL_SECONDS", 30.0),
            manager_poll_interval=_positive_float(env, "MANAGER_POLL_SECONDS", 10.0),
            dashboard_poll_interval=_positive_float(env, "DASHBOARD_POLL_SECONDS", 60.0),
            regression_alert_reset=env.get("REGRESSION_ALERT_RESET", "").strip().lower() in _TRUE_VALUES,
        )


__all__ = ["EngineSettings"]
