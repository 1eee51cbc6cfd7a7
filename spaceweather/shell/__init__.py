"""Imperative Shell - I/O and side effects.

This module contains all code that interacts with external systems:
- NOAA SWPC client and source fetchers (HTTP)
- SMTP email client
- Twilio SMS client (HTTP)
- Configuration loading (environment/files)

Keep this layer thin and simple. All business logic should be in core.
"""

from spaceweather.shell.swpc_client import SWPCClient, build_fetchers
from spaceweather.shell.email_client import EmailClient
from spaceweather.shell.sms_client import SmsClient
from spaceweather.shell.config_loader import load_config, load_config_from_env, load_validated_config

__all__ = [
    "SWPCClient",
    "build_fetchers",
    "EmailClient",
    "SmsClient",
    "load_config",
    "load_config_from_env",
    "load_validated_config",
]
