from __future__ import annotations

from mailtrack.config import TransportConfig
from mailtrack.errors import ConfigurationError

from .base import Transport
from .http import HttpTransport
from .smtp import SmtpTransport

__all__ = [
    "HttpTransport",
    "SmtpTransport",
    "Transport",
    "build_transport",
]


def build_transport(config: TransportConfig) -> Transport:
    if config.kind == "smtp":
        return SmtpTransport(
            host=config.host or "",
            port=config.port,
            username=config.username,
            password=config.password,
            from_address=config.from_address or "",
            use_tls=config.use_tls,
            timeout=config.timeout,
            accounts=config.accounts,
        )
    if config.kind == "http":
        return HttpTransport(
            base_url=config.base_url or "",
            token=config.token,
            timeout=config.timeout,
        )
    raise ConfigurationError(f"Unsupported transport kind '{config.kind}'")
