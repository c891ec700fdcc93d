"""ACME client boundary.

The certificate manager talks to the ACME client through a narrow interface so
tests can substitute a fake without spawning processes. The production client
shells out to certbot.
"""

from __future__ import annotations

import shlex
from collections.abc import Sequence
from typing import Protocol

from tenantctl.core.config import CertificateConfig
from tenantctl.core.process import CommandResult, run_command


class AcmeClient(Protocol):
    """What the certificate manager needs from an ACME client."""

    async def issue(self, domains: Sequence[str], contact_email: str) -> CommandResult: ...

    async def renew_all(self) -> CommandResult: ...

    def issue_command(self, domains: Sequence[str], contact_email: str) -> str: ...


class CertbotClient:
    """Runs certbot with its nginx plugin.

    Example argv:
        sudo certbot --nginx -d example.com -d www.example.com
            --non-interactive --agree-tos --email admin@example.com --redirect
    """

    def __init__(self, config: CertificateConfig) -> None:
        self.config = config

    def _base(self) -> list[str]:
        argv = [self.config.acme_client]
        if self.config.use_sudo:
            argv.insert(0, "sudo")
        return argv

    def issue_argv(self, domains: Sequence[str], contact_email: str) -> list[str]:
        if not domains:
            raise ValueError("At least one domain is required")
        argv = [*self._base(), "--nginx"]
        for domain in domains:
            argv += ["-d", domain]
        argv += ["--non-interactive", "--agree-tos", "--email", contact_email, "--redirect"]
        return argv

    def issue_command(self, domains: Sequence[str], contact_email: str) -> str:
        return shlex.join(self.issue_argv(domains, contact_email))

    async def issue(self, domains: Sequence[str], contact_email: str) -> CommandResult:
        return await run_command(
            self.issue_argv(domains, contact_email), timeout=self.config.issue_timeout
        )

    async def renew_all(self) -> CommandResult:
        return await run_command([*self._base(), "renew"], timeout=self.config.renew_timeout)
