"""Configuration Loader - Imperative Shell.

This module handles loading configuration from environment variables or
a YAML file. All I/O is contained here.

Models (Config, EmailSettings, SmsSettings) are defined in
spaceweather/core/config.py to avoid information leakage between layers.
"""

import logging
import os
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml

from spaceweather.core.config import (
    Config,
    ConfigError,
    EmailSettings,
    SmsSettings,
    SourceEndpoints,
    validate_config,
)


logger = logging.getLogger(__name__)


EMAIL_KEYS = ("SMTP_SERVER", "SMTP_USERNAME", "SMTP_PASSWORD", "EMAIL_FROM", "EMAIL_TO")
EMAIL_OPTIONAL_KEYS = ("SMTP_PORT", "SMTP_TLS")
SMS_KEYS = ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_FROM", "SMS_TO")

# Scalar settings: env key -> (Config field, parser)
SCALAR_KEYS: dict[str, tuple[str, Callable[[str], Any]]] = {
    "LAT": ("latitude", float),
    "LON": ("longitude", float),
    "LOCAL_TZ": ("local_tz", str),
    "LAT_SENSITIVITY": ("latitude_sensitivity", float),
    "LIS_THRESHOLD": ("lis_threshold", int),
    "LIS_REARM_MARGIN": ("lis_rearm_margin", int),
    "SHORT_BZ_NT": ("short_bz_nt", float),
    "SHORT_SPD_KMS": ("short_spd_kms", float),
    "DAILY_REPORT_HOUR": ("daily_report_hour", int),
    "WARNING_COOLDOWN_MINUTES": ("warning_cooldown_minutes", float),
    "STARTUP_GRACE_SECONDS": ("startup_grace_seconds", float),
    "CALENDAR_INTERVAL_SECONDS": ("calendar_interval_seconds", float),
    "FETCH_TIMEOUT_SECONDS": ("fetch_timeout_seconds", float),
    "ALERT_MAX_AGE_HOURS": ("alert_max_age_hours", float),
    "DISPATCH_MAX_ATTEMPTS": ("dispatch_max_attempts", int),
    "DISPATCH_BACKOFF_SECONDS": ("dispatch_backoff_seconds", float),
}

ENDPOINT_KEYS = {
    "KP_URL": "kp_url",
    "ALERTS_URL": "alerts_url",
    "BZ_URL": "bz_url",
    "SPD_URL": "speed_url",
}


def _resolve_value(value: Any) -> Any:
    """Resolve a ${VAR} placeholder from the environment.

    Non-string values and plain strings are returned unchanged.
    """
    if not isinstance(value, str):
        return value

    if value.startswith("${") and value.endswith("}"):
        var_name = value[2:-1]
        env_value = os.environ.get(var_name)
        if env_value:
            return env_value
        logger.warning("Environment variable %s not set", var_name)

    return value


def _get(values: Mapping[str, Any], key: str) -> str | None:
    """Look up a key, treating blank strings as unset."""
    value = values.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_number(key: str, raw: str, parser: Callable[[str], Any]) -> Any:
    try:
        return parser(raw)
    except ValueError:
        raise ConfigError(f"{key}: expected {parser.__name__}, got '{raw}'") from None


def _parse_email(values: Mapping[str, Any]) -> EmailSettings | None:
    """Parse the SMTP_*/EMAIL_* group, None if entirely absent.

    Raises:
        ConfigError: If the group is only partially configured
    """
    present = [k for k in EMAIL_KEYS + EMAIL_OPTIONAL_KEYS if _get(values, k)]
    if not present:
        return None

    missing = [k for k in EMAIL_KEYS if not _get(values, k)]
    if missing:
        raise ConfigError(f"Email channel partially configured, missing: {', '.join(missing)}")

    port = _get(values, "SMTP_PORT")

    return EmailSettings(
        smtp_server=_get(values, "SMTP_SERVER"),
        username=_get(values, "SMTP_USERNAME"),
        password=_get(values, "SMTP_PASSWORD"),
        email_from=_get(values, "EMAIL_FROM"),
        email_to=_get(values, "EMAIL_TO"),
        smtp_port=_parse_number("SMTP_PORT", port, int) if port else None,
        smtp_tls=(_get(values, "SMTP_TLS") or "starttls").lower(),
    )


def _parse_sms(values: Mapping[str, Any]) -> SmsSettings | None:
    """Parse the TWILIO_*/SMS_TO group, None if entirely absent.

    Raises:
        ConfigError: If the group is only partially configured
    """
    present = [k for k in SMS_KEYS if _get(values, k)]
    if not present:
        return None

    missing = [k for k in SMS_KEYS if not _get(values, k)]
    if missing:
        raise ConfigError(f"SMS channel partially configured, missing: {', '.join(missing)}")

    return SmsSettings(
        account_sid=_get(values, "TWILIO_ACCOUNT_SID"),
        auth_token=_get(values, "TWILIO_AUTH_TOKEN"),
        from_number=_get(values, "TWILIO_FROM"),
        to_number=_get(values, "SMS_TO"),
    )


def load_config_from_mapping(values: Mapping[str, Any]) -> Config:
    """Build a Config from upper-case key/value settings.

    Args:
        values: Settings keyed like the environment variables

    Returns:
        Parsed (not yet validated) Config

    Raises:
        ConfigError: On unparseable numbers or partial channel groups
    """
    kwargs: dict[str, Any] = {}
    for key, (field_name, parser) in SCALAR_KEYS.items():
        raw = _get(values, key)
        if raw is not None:
            kwargs[field_name] = _parse_number(key, raw, parser)

    endpoints = SourceEndpoints()
    for key, field_name in ENDPOINT_KEYS.items():
        raw = _get(values, key)
        if raw is not None:
            setattr(endpoints, field_name, raw)

    return Config(
        endpoints=endpoints,
        email=_parse_email(values),
        sms=_parse_sms(values),
        **kwargs,
    )


def load_config_from_env(environ: Mapping[str, str] | None = None) -> Config:
    """Load configuration from environment variables.

    Args:
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Parsed Config
    """
    return load_config_from_mapping(os.environ if environ is None else environ)


def load_config(config_path: str | Path) -> Config:
    """Load configuration from a YAML file.

    Keys are the environment variable names in lower case. String values
    may be ${VAR} placeholders resolved from the environment.

    This method performs file I/O.

    Raises:
        ConfigError: If the file is missing or not a mapping
    """
    path = Path(config_path)

    logger.info("Loading configuration from %s", path)

    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        logger.warning("Config file is empty, using defaults")
        data = {}

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    values = {str(k).upper(): _resolve_value(v) for k, v in data.items()}
    return load_config_from_mapping(values)


def load_validated_config(config_path: str | Path | None = None) -> Config:
    """Load configuration and refuse to continue if it is invalid.

    Uses the YAML file at `config_path` (or CONFIG_PATH) when given,
    otherwise the environment.

    Raises:
        ConfigError: If the configuration cannot be loaded or is invalid
    """
    if config_path is None:
        config_path = os.environ.get("CONFIG_PATH")

    config = load_config(config_path) if config_path else load_config_from_env()

    result = validate_config(config)
    for warning in result.warnings:
        logger.warning("Config warning [%s]: %s", warning.field, warning.message)

    if not result.valid:
        details = "; ".join(f"{e.field}: {e.message}" for e in result.critical_errors)
        raise ConfigError(f"Invalid configuration: {details}")

    logger.info(
        "Loaded config: lat %.2f, threshold %d, channels %s",
        config.latitude,
        config.lis_threshold,
        ", ".join(config.enabled_channels),
    )

    return config
