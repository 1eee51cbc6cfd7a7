"""Configuration models - Pure data structures.

These are domain models for configuration. The actual loading
(I/O) is handled by the shell layer.
"""

from dataclasses import dataclass, field
from datetime import timedelta

import pytz

from spaceweather.core.alerts import AlertSettings
from spaceweather.core.score import ScoreSettings, latitude_sensitivity


# NOAA SWPC endpoints
KP_URL = "https://services.swpc.noaa.gov/products/noaa-planetary-k-index-forecast.json"
ALERTS_URL = "https://services.swpc.noaa.gov/products/alerts.json"
BZ_URL = "https://services.swpc.noaa.gov/json/rtsw/rtsw_mag_1m.json"
SPD_URL = "https://services.swpc.noaa.gov/json/rtsw/rtsw_wind_1m.json"

SMTP_TLS_MODES = ("starttls", "implicit")


class ConfigError(Exception):
    """Raised at startup when the process cannot run as configured."""


@dataclass
class SourceEndpoints:
    """Upstream URLs, configurable since SWPC schemas and paths change."""
    kp_url: str = KP_URL
    alerts_url: str = ALERTS_URL
    bz_url: str = BZ_URL
    speed_url: str = SPD_URL


@dataclass
class EmailSettings:
    """SMTP channel settings.

    Attributes:
        smtp_server: SMTP host
        smtp_port: Port (587 for STARTTLS, 465 for implicit TLS)
        smtp_tls: 'starttls' or 'implicit'
        username: SMTP login
        password: SMTP password
        email_from: Sender address
        email_to: Recipient address
    """
    smtp_server: str
    username: str
    password: str
    email_from: str
    email_to: str
    smtp_port: int | None = None
    smtp_tls: str = "starttls"

    @property
    def port(self) -> int:
        if self.smtp_port is not None:
            return self.smtp_port
        return 465 if self.smtp_tls == "implicit" else 587


@dataclass
class SmsSettings:
    """Twilio SMS channel settings."""
    account_sid: str
    auth_token: str
    from_number: str
    to_number: str


@dataclass
class Config:
    """Application configuration.

    This is a pure data structure - no I/O or side effects.

    Attributes:
        latitude: Operator latitude
        longitude: Operator longitude
        local_tz: IANA timezone for the daily report and timestamps
        latitude_sensitivity: Explicit multiplier, derived from latitude if None
        lis_threshold: LIS at or above which warnings trigger
        lis_rearm_margin: Hysteresis below the threshold before re-arming
        short_bz_nt: Short-fuse Bz threshold in nT
        short_spd_kms: Short-fuse speed threshold in km/s
        daily_report_hour: Local hour of the daily report
        warning_cooldown_minutes: Cooldown window between warnings
        startup_grace_seconds: How long the startup report may wait for data
        calendar_interval_seconds: How often the calendar check runs
        fetch_timeout_seconds: HTTP timeout for SWPC requests
        alert_max_age_hours: Lifetime of alert notices without a validity line
        dispatch_max_attempts: Attempts per channel per notification
        dispatch_backoff_seconds: Base delay between channel attempts
        endpoints: SWPC URLs
        email: Email channel, None if disabled
        sms: SMS channel, None if disabled
    """
    latitude: float = 28.9
    longitude: float = -81.3
    local_tz: str = "America/New_York"
    latitude_sensitivity: float | None = None
    lis_threshold: int = 40
    lis_rearm_margin: int = 10
    short_bz_nt: float = -10.0
    short_spd_kms: float = 600.0
    daily_report_hour: int = 7
    warning_cooldown_minutes: float = 15.0
    startup_grace_seconds: float = 0.0
    calendar_interval_seconds: float = 30.0
    fetch_timeout_seconds: float = 10.0
    alert_max_age_hours: float = 24.0
    dispatch_max_attempts: int = 3
    dispatch_backoff_seconds: float = 2.0
    endpoints: SourceEndpoints = field(default_factory=SourceEndpoints)
    email: EmailSettings | None = None
    sms: SmsSettings | None = None

    @property
    def sensitivity(self) -> float:
        if self.latitude_sensitivity is not None:
            return self.latitude_sensitivity
        return latitude_sensitivity(self.latitude)

    @property
    def enabled_channels(self) -> list[str]:
        channels = []
        if self.email is not None:
            channels.append("email")
        if self.sms is not None:
            channels.append("sms")
        return channels

    def score_settings(self) -> ScoreSettings:
        return ScoreSettings(
            sensitivity=self.sensitivity,
            short_bz_nt=self.short_bz_nt,
            short_spd_kms=self.short_spd_kms,
            alert_max_age=timedelta(hours=self.alert_max_age_hours),
        )

    def alert_settings(self) -> AlertSettings:
        return AlertSettings(
            lis_threshold=self.lis_threshold,
            rearm_margin=self.lis_rearm_margin,
            cooldown=timedelta(minutes=self.warning_cooldown_minutes),
            daily_report_hour=self.daily_report_hour,
            local_tz=self.local_tz,
            startup_grace=timedelta(seconds=self.startup_grace_seconds),
        )


@dataclass
class ValidationError:
    """A configuration validation error.

    Attributes:
        field: The field that has an error
        message: Human-readable error description
        severity: 'error' or 'warning'
    """
    field: str
    message: str
    severity: str = "error"


@dataclass
class ValidationResult:
    """Result of validating configuration.

    Attributes:
        valid: True if no errors (warnings are OK)
        errors: List of validation errors/warnings
    """
    valid: bool
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def warnings(self) -> list[ValidationError]:
        """Get only warnings."""
        return [e for e in self.errors if e.severity == "warning"]

    @property
    def critical_errors(self) -> list[ValidationError]:
        """Get only critical errors."""
        return [e for e in self.errors if e.severity == "error"]


def validate_coordinates(lat: float, lon: float, field_name: str) -> list[ValidationError]:
    """Validate latitude/longitude coordinates.

    Pure function.

    Args:
        lat: Latitude value
        lon: Longitude value
        field_name: Name of the field for error messages

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []

    if not -90 <= lat <= 90:
        errors.append(ValidationError(
            field=field_name,
            message=f"Latitude {lat} out of range [-90, 90]",
        ))

    if not -180 <= lon <= 180:
        errors.append(ValidationError(
            field=field_name,
            message=f"Longitude {lon} out of range [-180, 180]",
        ))

    return errors


def _require_positive(value: float, field_name: str) -> list[ValidationError]:
    if value <= 0:
        return [ValidationError(
            field=field_name,
            message=f"Must be positive, got {value}",
        )]
    return []


def validate_config(config: Config) -> ValidationResult:
    """Validate configuration for errors and warnings.

    Pure function.

    Args:
        config: Configuration to validate

    Returns:
        ValidationResult with any errors/warnings found
    """
    errors: list[ValidationError] = []

    errors.extend(validate_coordinates(config.latitude, config.longitude, "LAT/LON"))

    if config.local_tz not in pytz.all_timezones_set:
        errors.append(ValidationError(
            field="LOCAL_TZ",
            message=f"Unknown timezone '{config.local_tz}'",
        ))

    if not 0 <= config.lis_threshold <= 100:
        errors.append(ValidationError(
            field="LIS_THRESHOLD",
            message=f"LIS threshold {config.lis_threshold} out of range [0, 100]",
        ))

    if config.lis_rearm_margin < 0:
        errors.append(ValidationError(
            field="LIS_REARM_MARGIN",
            message=f"Re-arm margin must not be negative, got {config.lis_rearm_margin}",
        ))

    if not 0 <= config.daily_report_hour <= 23:
        errors.append(ValidationError(
            field="DAILY_REPORT_HOUR",
            message=f"Report hour {config.daily_report_hour} out of range [0, 23]",
        ))

    if config.latitude_sensitivity is not None and config.latitude_sensitivity <= 0:
        errors.append(ValidationError(
            field="LAT_SENSITIVITY",
            message=f"Sensitivity must be positive, got {config.latitude_sensitivity}",
        ))

    if config.short_spd_kms <= 0:
        errors.append(ValidationError(
            field="SHORT_SPD_KMS",
            message=f"Short-fuse speed must be positive, got {config.short_spd_kms}",
        ))

    if config.short_bz_nt > 0:
        errors.append(ValidationError(
            field="SHORT_BZ_NT",
            message=f"Short-fuse Bz {config.short_bz_nt} nT is northward and would trip constantly",
            severity="warning",
        ))

    errors.extend(_require_positive(config.warning_cooldown_minutes, "WARNING_COOLDOWN_MINUTES"))
    errors.extend(_require_positive(config.calendar_interval_seconds, "CALENDAR_INTERVAL_SECONDS"))
    errors.extend(_require_positive(config.fetch_timeout_seconds, "FETCH_TIMEOUT_SECONDS"))
    errors.extend(_require_positive(config.alert_max_age_hours, "ALERT_MAX_AGE_HOURS"))
    errors.extend(_require_positive(config.dispatch_max_attempts, "DISPATCH_MAX_ATTEMPTS"))

    if config.startup_grace_seconds < 0:
        errors.append(ValidationError(
            field="STARTUP_GRACE_SECONDS",
            message=f"Grace period must not be negative, got {config.startup_grace_seconds}",
        ))

    if config.dispatch_backoff_seconds < 0:
        errors.append(ValidationError(
            field="DISPATCH_BACKOFF_SECONDS",
            message=f"Backoff must not be negative, got {config.dispatch_backoff_seconds}",
        ))

    if config.email is not None:
        if config.email.smtp_tls not in SMTP_TLS_MODES:
            errors.append(ValidationError(
                field="SMTP_TLS",
                message=f"SMTP_TLS must be one of {', '.join(SMTP_TLS_MODES)}, got '{config.email.smtp_tls}'",
            ))
        if not 0 < config.email.port < 65536:
            errors.append(ValidationError(
                field="SMTP_PORT",
                message=f"SMTP port {config.email.port} out of range",
            ))

    # A monitor that cannot notify anyone must not start
    if not config.enabled_channels:
        errors.append(ValidationError(
            field="channels",
            message="No notification channels configured (set the SMTP_*/EMAIL_* or TWILIO_*/SMS_TO group)",
        ))

    has_critical = any(e.severity == "error" for e in errors)

    return ValidationResult(
        valid=not has_critical,
        errors=errors,
    )
