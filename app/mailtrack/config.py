from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from mailtrack.errors import ConfigurationError


DEFAULT_ACCOUNT_PREFIX = "005"
DEFAULT_TEMPLATE_PREFIX = "00X"


@dataclass
class DatabaseConfig:
    engine: str
    name: str
    path: Path

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DatabaseConfig":
        if "name" not in data:
            raise ConfigurationError("database configuration missing 'name'")
        return cls(
            engine=data.get("type", "sqlite"),
            name=data["name"],
            path=Path(data.get("path", "data")),
        )


@dataclass
class IdentityConfig:
    display_name: str
    email: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IdentityConfig":
        email = data.get("email")
        if not email:
            raise ConfigurationError("identity configuration missing 'email'")
        return cls(
            display_name=str(data.get("display_name") or email),
            email=str(email),
        )


@dataclass
class ClassifierConfig:
    account_prefix: str = DEFAULT_ACCOUNT_PREFIX
    template_prefix: str = DEFAULT_TEMPLATE_PREFIX

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ClassifierConfig":
        data = data or {}
        return cls(
            account_prefix=str(data.get("account_prefix") or DEFAULT_ACCOUNT_PREFIX),
            template_prefix=str(data.get("template_prefix") or DEFAULT_TEMPLATE_PREFIX),
        )


@dataclass
class TransportConfig:
    kind: str
    host: Optional[str] = None
    port: int = 587
    username: str = ""
    password: str = ""
    from_address: Optional[str] = None
    use_tls: bool = True
    base_url: Optional[str] = None
    token: Optional[str] = None
    timeout: float = 10.0
    accounts: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransportConfig":
        kind = (data.get("kind") or "smtp").strip().lower()
        if kind == "smtp":
            if not data.get("host"):
                raise ConfigurationError("smtp transport missing required 'host'")
            if not data.get("from_address"):
                raise ConfigurationError("smtp transport missing required 'from_address'")
        elif kind == "http":
            if not data.get("base_url"):
                raise ConfigurationError("http transport missing required 'base_url'")
        else:
            raise ConfigurationError(f"Unsupported transport kind '{kind}'")

        accounts_raw = data.get("accounts") or {}
        if not isinstance(accounts_raw, dict):
            raise ConfigurationError("transport 'accounts' must be a mapping of id to address")

        return cls(
            kind=kind,
            host=data.get("host"),
            port=int(data.get("port", 587)),
            username=str(data.get("username") or ""),
            password=str(data.get("password") or ""),
            from_address=data.get("from_address"),
            use_tls=bool(data.get("use_tls", True)),
            base_url=data.get("base_url"),
            token=data.get("token"),
            timeout=float(data.get("timeout", 10.0)),
            accounts={str(key): str(value) for key, value in accounts_raw.items()},
        )


@dataclass
class TemplateConfig:
    template_id: str
    name: str
    subject: Optional[str] = None
    body: Optional[str] = None
    rich_body: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TemplateConfig":
        template_id = data.get("id") or data.get("template_id")
        name = data.get("name")
        if not template_id or not name:
            raise ConfigurationError("template entries require both 'id' and 'name'")
        return cls(
            template_id=str(template_id),
            name=str(name),
            subject=data.get("subject"),
            body=data.get("body"),
            rich_body=data.get("rich_body") or data.get("html_body"),
        )


@dataclass
class MailtrackConfig:
    database: DatabaseConfig
    identity: IdentityConfig
    transport: TransportConfig
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    templates: List[TemplateConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MailtrackConfig":
        for section in ("database", "identity", "transport"):
            if not isinstance(data.get(section), dict):
                raise ConfigurationError(f"mailtrack configuration missing '{section}' section")
        templates_raw = data.get("templates") or []
        return cls(
            database=DatabaseConfig.from_dict(data["database"]),
            identity=IdentityConfig.from_dict(data["identity"]),
            transport=TransportConfig.from_dict(data["transport"]),
            classifier=ClassifierConfig.from_dict(data.get("classifier")),
            templates=[TemplateConfig.from_dict(entry) for entry in templates_raw if isinstance(entry, dict)],
        )


@dataclass
class AppConfig:
    mailtrack: MailtrackConfig

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        if not isinstance(data, dict) or not isinstance(data.get("mailtrack"), dict):
            raise ConfigurationError("configuration missing 'mailtrack' section")
        return cls(mailtrack=MailtrackConfig.from_dict(data["mailtrack"]))


def app_config(file_path: str) -> AppConfig:
    with open(file_path, "r", encoding="utf-8") as file:
        config_dict = yaml.safe_load(file)
    return AppConfig.from_dict(config_dict)
