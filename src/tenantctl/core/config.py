"""Configuration types with environment variable support.

All settings can be configured via environment variables with the TENANTCTL_ prefix.
Example: TENANTCTL_HOSTING_MODE=vps switches route provisioning to nginx virtual hosts.

The Settings object is built once at process start and each component receives
only the narrow config model it needs (ResolverConfig, CertificateConfig, ...).
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

HostingMode = Literal["shared", "vps"]

DEFAULT_PLACEHOLDER_FILES = ("index.html", ".htaccess", "default.html", "cgi-bin")


def load_config_from_file(path: str | Path) -> dict[str, Any]:
    """Load configuration from a YAML or TOML file.

    Args:
        path: Path to the configuration file (.yaml, .yml, or .toml)

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config file has encoding errors, invalid syntax, or unsupported format
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(f"Config file encoding error in {path}: {e}") from e

    try:
        if path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(content) or {}
        elif path.suffix == ".toml":
            return tomllib.loads(content)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e


def flatten_config(config: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in config.items():
        full_key = f"{prefix}_{key}" if prefix else key
        if isinstance(value, dict):
            result.update(flatten_config(value, full_key))
        else:
            result[full_key] = value
    return result


class ResolverConfig(BaseModel):
    """DNS lookup settings."""

    timeout: float = Field(default=5.0, gt=0, description="Bound on a single DNS lookup (seconds).")


class VerificationConfig(BaseModel):
    """Settings for classifying a tenant domain."""

    hosting_mode: HostingMode = "shared"
    server_ip: str | None = Field(
        default=None,
        description="Address tenant domains must resolve to, unless a tenant overrides it.",
    )
    http_timeout: float = Field(default=10.0, gt=0, description="Reachability probe timeout (seconds).")
    route_dir_name: str = "public_html"
    domains_base_path: str = "/home/tenants/domains"


class CertificateConfig(BaseModel):
    """Settings for the ACME client boundary and certificate tracking."""

    admin_email: str = "admin@example.com"
    development_mode: bool = Field(
        default=True,
        description="When true, certificate issuance and renewal are skipped and reported as skipped.",
    )
    acme_client: str = "certbot"
    use_sudo: bool = True
    include_www: bool = True
    live_path: str = "/etc/letsencrypt/live"
    validity_days: int = Field(default=90, gt=0)
    issue_timeout: float = Field(default=120.0, gt=0)
    renew_timeout: float = Field(default=300.0, gt=0)
    probe_timeout: float = Field(default=10.0, gt=0)


class SharedHostingConfig(BaseModel):
    """Symlink targets for shared hosting."""

    domains_base_path: str = "/home/tenants/domains"
    frontend_public_html_path: str = "/home/tenants/domains/frontend/public_html"
    route_dir_name: str = "public_html"
    placeholder_files: list[str] = Field(default_factory=lambda: list(DEFAULT_PLACEHOLDER_FILES))


class VirtualHostConfig(BaseModel):
    """nginx paths and commands for VPS hosting."""

    sites_available: str = "/etc/nginx/sites-available"
    sites_enabled: str = "/etc/nginx/sites-enabled"
    frontend_path: str = "/var/www/frontend/public"
    api_upstream: str = "http://localhost:8000"
    live_path: str = "/etc/letsencrypt/live"
    nginx_binary: str = "nginx"
    use_sudo: bool = True
    include_www: bool = True
    command_timeout: float = Field(default=30.0, gt=0)


class Settings(BaseSettings):
    """Master configuration for tenant domain provisioning.

    Example:
        settings = Settings(hosting_mode="vps", server_ip="203.0.113.9")
        engine = DomainVerificationEngine(settings.verification_config(), ...)
    """

    model_config = SettingsConfigDict(
        env_prefix="TENANTCTL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    hosting_mode: HostingMode = Field(
        default="shared",
        description="'shared' links domain folders to the frontend, 'vps' writes nginx virtual hosts.",
    )
    server_ip: str | None = Field(
        default=None,
        description="Expected DNS resolution target for tenant domains.",
    )
    storage_path: str = Field(
        default="tenants.json",
        description="Path to the JSON file storing tenant records.",
    )

    # Shared hosting
    domains_base_path: str = Field(
        default="/home/tenants/domains",
        description="Directory holding one folder per hosted domain.",
    )
    frontend_public_html_path: str = Field(
        default="/home/tenants/domains/frontend/public_html",
        description="Shared frontend build every tenant route links to.",
    )
    route_dir_name: str = Field(
        default="public_html",
        description="Name of the web root inside each domain folder.",
    )
    placeholder_files: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PLACEHOLDER_FILES),
        description="Hosting-provider scaffold files that are safe to delete.",
    )

    # VPS hosting
    nginx_sites_available: str = Field(default="/etc/nginx/sites-available")
    nginx_sites_enabled: str = Field(default="/etc/nginx/sites-enabled")
    vps_frontend_path: str = Field(
        default="/var/www/frontend/public",
        description="Shared frontend root served by every tenant virtual host.",
    )
    api_upstream: str = Field(
        default="http://localhost:8000",
        description="Upstream for the /api/ reverse proxy location.",
    )
    nginx_binary: str = Field(default="nginx")
    nginx_timeout: float = Field(default=30.0, gt=0)

    # Certificates
    ssl_admin_email: str = Field(default="admin@example.com")
    development_mode: bool = Field(
        default=True,
        description="Skip every certificate operation and report it as skipped.",
    )
    acme_client: str = Field(default="certbot")
    letsencrypt_live_path: str = Field(default="/etc/letsencrypt/live")
    certificate_validity_days: int = Field(default=90, gt=0)
    acme_timeout: float = Field(default=120.0, gt=0)
    renew_timeout: float = Field(default=300.0, gt=0)
    use_sudo: bool = Field(default=True, description="Prefix privileged commands with sudo.")
    include_www: bool = Field(default=True, description="Also serve and certify www.<domain>.")

    # Timeouts
    dns_timeout: float = Field(default=5.0, gt=0)
    http_timeout: float = Field(default=10.0, gt=0)
    tls_probe_timeout: float = Field(default=10.0, gt=0)

    def resolver_config(self) -> ResolverConfig:
        return ResolverConfig(timeout=self.dns_timeout)

    def verification_config(self) -> VerificationConfig:
        return VerificationConfig(
            hosting_mode=self.hosting_mode,
            server_ip=self.server_ip,
            http_timeout=self.http_timeout,
            route_dir_name=self.route_dir_name,
            domains_base_path=self.domains_base_path,
        )

    def certificate_config(self) -> CertificateConfig:
        return CertificateConfig(
            admin_email=self.ssl_admin_email,
            development_mode=self.development_mode,
            acme_client=self.acme_client,
            use_sudo=self.use_sudo,
            include_www=self.include_www,
            live_path=self.letsencrypt_live_path,
            validity_days=self.certificate_validity_days,
            issue_timeout=self.acme_timeout,
            renew_timeout=self.renew_timeout,
            probe_timeout=self.tls_probe_timeout,
        )

    def shared_hosting_config(self) -> SharedHostingConfig:
        return SharedHostingConfig(
            domains_base_path=self.domains_base_path,
            frontend_public_html_path=self.frontend_public_html_path,
            route_dir_name=self.route_dir_name,
            placeholder_files=list(self.placeholder_files),
        )

    def virtual_host_config(self) -> VirtualHostConfig:
        return VirtualHostConfig(
            sites_available=self.nginx_sites_available,
            sites_enabled=self.nginx_sites_enabled,
            frontend_path=self.vps_frontend_path,
            api_upstream=self.api_upstream,
            live_path=self.letsencrypt_live_path,
            nginx_binary=self.nginx_binary,
            use_sudo=self.use_sudo,
            include_www=self.include_www,
            command_timeout=self.nginx_timeout,
        )

    def to_display_dict(self) -> dict[str, Any]:
        """Export current configuration as a nested dictionary for display."""
        return {
            "general": {
                "hosting_mode": self.hosting_mode,
                "server_ip": self.server_ip,
                "storage_path": self.storage_path,
                "development_mode": self.development_mode,
            },
            "shared_hosting": {
                "domains_base_path": self.domains_base_path,
                "frontend_public_html_path": self.frontend_public_html_path,
                "route_dir_name": self.route_dir_name,
                "placeholder_files": ", ".join(self.placeholder_files),
            },
            "vps": {
                "nginx_sites_available": self.nginx_sites_available,
                "nginx_sites_enabled": self.nginx_sites_enabled,
                "vps_frontend_path": self.vps_frontend_path,
                "api_upstream": self.api_upstream,
                "nginx_binary": self.nginx_binary,
            },
            "certificates": {
                "ssl_admin_email": self.ssl_admin_email,
                "acme_client": self.acme_client,
                "letsencrypt_live_path": self.letsencrypt_live_path,
                "certificate_validity_days": self.certificate_validity_days,
                "include_www": self.include_www,
                "use_sudo": self.use_sudo,
            },
            "timeouts": {
                "dns_timeout": self.dns_timeout,
                "http_timeout": self.http_timeout,
                "tls_probe_timeout": self.tls_probe_timeout,
                "acme_timeout": self.acme_timeout,
                "renew_timeout": self.renew_timeout,
                "nginx_timeout": self.nginx_timeout,
            },
        }

    def validate_for_mode(self) -> tuple[list[str], list[str]]:
        """Check the settings the active hosting mode depends on.

        Returns:
            Tuple of (errors, warnings).
        """
        errors: list[str] = []
        warnings: list[str] = []

        if not self.server_ip:
            errors.append("server_ip is not set; DNS verification cannot run")

        if self.hosting_mode == "shared":
            if not Path(self.domains_base_path).is_dir():
                warnings.append(f"domains_base_path ({self.domains_base_path}) does not exist")
            if not Path(self.frontend_public_html_path).exists():
                warnings.append(
                    f"frontend_public_html_path ({self.frontend_public_html_path}) does not exist"
                )
        else:
            for name in ("nginx_sites_available", "nginx_sites_enabled"):
                value = getattr(self, name)
                if not Path(value).is_dir():
                    warnings.append(f"{name} ({value}) does not exist")

        if self.development_mode:
            warnings.append("development_mode is on; certificate operations will be skipped")

        return errors, warnings


def load_settings(config_file: str | Path | None = None, **overrides: Any) -> Settings:
    """Build the process-wide Settings.

    Precedence: explicit overrides > config file > environment > defaults.
    """
    values: dict[str, Any] = {}
    if config_file:
        values.update(flatten_config(load_config_from_file(config_file)))
    values.update({key: value for key, value in overrides.items() if value is not None})
    known = set(Settings.model_fields)
    return Settings(**{key: value for key, value in values.items() if key in known})
