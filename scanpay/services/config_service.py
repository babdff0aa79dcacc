"""File and environment configuration for the scanner client."""

from __future__ import annotations

import json
import logging
import os
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict

HISTORY_CAP = 5


class ScannerSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    backend_url: str = ""
    api_key: str = ""
    request_timeout: float = 15.0
    default_ticket_fee: Decimal = Decimal("500")
    history_limit: int = HISTORY_CAP
    currency: str = "SYP"
    locale: str = "en"
    audit_db_path: Optional[str] = None
    log_level: str = "INFO"


# setting name -> environment variable
ENV_VARS = {
    "backend_url": "SCANPAY_BACKEND_URL",
    "api_key": "SCANPAY_API_KEY",
    "request_timeout": "SCANPAY_REQUEST_TIMEOUT",
    "default_ticket_fee": "SCANPAY_DEFAULT_TICKET_FEE",
    "history_limit": "SCANPAY_HISTORY_LIMIT",
    "currency": "SCANPAY_CURRENCY",
    "locale": "SCANPAY_LOCALE",
    "audit_db_path": "SCANPAY_AUDIT_DB",
    "log_level": "SCANPAY_LOG_LEVEL",
}


class ConfigService:
    """Load scanner settings from config/scanner.json, then the environment.

    Environment wins over the file; the file wins over built-in defaults.
    """

    def __init__(self, config_path: Path | None = None, environ: Mapping[str, str] | None = None) -> None:
        base_dir = Path(__file__).resolve().parents[2]
        self.config_path = config_path or base_dir / "config" / "scanner.json"
        self.environ = os.environ if environ is None else environ
        self._settings: Optional[ScannerSettings] = None
        self._logger = logging.getLogger(__name__)

    # -----------------
    # Public accessors
    # -----------------
    def get_settings(self) -> ScannerSettings:
        if self._settings is None:
            self._settings = self._build_settings()
        return self._settings

    def reload(self) -> ScannerSettings:
        self._settings = None
        return self.get_settings()

    # -----------------
    # Internal loaders
    # -----------------
    def _load_file(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            return {}
        with self.config_path.open("r", encoding="utf-8") as handle:
            data = json.load(handle) or {}
        self._logger.info("Scanner config loaded", extra={"path": str(self.config_path)})
        return {key: value for key, value in data.items() if key in ENV_VARS}

    def _build_settings(self) -> ScannerSettings:
        defaults = ScannerSettings()
        raw: Dict[str, Any] = self._load_file()
        for name, env_var in ENV_VARS.items():
            value = self.environ.get(env_var)
            if value not in (None, ""):
                raw[name] = value

        values: Dict[str, Any] = {}
        for name, value in raw.items():
            default = getattr(defaults, name)
            try:
                values[name] = self._coerce(name, value, default)
            except (TypeError, ValueError, InvalidOperation):
                self._logger.warning(
                    "Invalid value for %s, using default", name, extra={"value": value}
                )

        if "history_limit" in values:
            values["history_limit"] = min(max(values["history_limit"], 1), HISTORY_CAP)
        return ScannerSettings(**values)

    @staticmethod
    def _coerce(name: str, value: Any, default: Any) -> Any:
        if name == "default_ticket_fee":
            fee = Decimal(str(value))
            if not fee.is_finite() or fee <= 0:
                raise ValueError("ticket fee must be positive")
            return fee
        if name == "history_limit":
            return int(value)
        if name == "request_timeout":
            timeout = float(value)
            if timeout <= 0:
                raise ValueError("timeout must be positive")
            return timeout
        return str(value) if value is not None else default
