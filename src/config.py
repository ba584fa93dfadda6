"""
Configuration management for the PAN-OS firewall upgrader.
"""

import os
from dataclasses import dataclass
from datetime import date
from typing import Optional

DEFAULT_BASE_VERSION = "9.0.0"
# Values are passed to the device as quoted op-command arguments
QUOTE_CHARS = ("\"", "'")


def default_backup_filename() -> str:
    """Timestamped name for the running-config backup."""
    return f"panos-backup-{date.today().isoformat()}.xml"


@dataclass(frozen=True)
class UpgradeOptions:
    """Options that decide which upgrade steps run."""

    target_version: str
    backup_config: bool = True
    backup_filename: str = ""
    upgrade_content: bool = False
    download_base_version: bool = False
    base_version: str = DEFAULT_BASE_VERSION

    def __post_init__(self):
        if not self.target_version:
            raise ValueError("target_version is required")
        for name in ("target_version", "base_version", "backup_filename"):
            value = getattr(self, name)
            if any(ch in value for ch in QUOTE_CHARS):
                raise ValueError(f"{name} cannot contain quote characters: {value!r}")
        if not self.backup_filename:
            object.__setattr__(self, "backup_filename", default_backup_filename())

    @classmethod
    def from_args(cls, args) -> "UpgradeOptions":
        """
        Create upgrade options from command-line arguments.

        Args:
            args: Parsed argparse arguments

        Returns:
            UpgradeOptions instance
        """
        return cls(
            target_version=args.target_version,
            backup_config=args.backup_config,
            backup_filename=args.backup_filename or "",
            upgrade_content=args.upgrade_content,
            download_base_version=args.download_base_version,
            base_version=args.base_version,
        )


@dataclass
class DeviceConfig:
    """Connection details for the firewall."""

    host: str
    username: str = "admin"
    password: Optional[str] = None
    api_key: Optional[str] = None
    verify_ssl: bool = False
    timeout_s: int = 60
    max_retries: int = 0

    def validate(self) -> None:
        """
        Check that the device can be authenticated against.

        Raises:
            ValueError: If neither an API key nor a password is available
        """
        if not self.host:
            raise ValueError("Device host is required")
        if not self.api_key and not self.password:
            raise ValueError(
                "No credentials: pass --api-key or --password "
                "(or set PANOS_API_KEY / PANOS_PASSWORD)"
            )

    @classmethod
    def from_args(cls, args) -> "DeviceConfig":
        """
        Create device configuration from command-line arguments.

        Flags take precedence over the PANOS_USERNAME, PANOS_PASSWORD and
        PANOS_API_KEY environment variables.
        """
        return cls(
            host=args.host,
            username=args.username or os.environ.get("PANOS_USERNAME", "admin"),
            password=args.password or os.environ.get("PANOS_PASSWORD"),
            api_key=args.api_key or os.environ.get("PANOS_API_KEY"),
            verify_ssl=args.verify_ssl,
            timeout_s=args.request_timeout,
            max_retries=args.http_retries,
        )
