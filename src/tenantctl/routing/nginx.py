"""nginx control commands (config test and reload)."""

from __future__ import annotations

import shlex

import structlog

from tenantctl.core.config import VirtualHostConfig
from tenantctl.core.process import CommandResult, run_command

logger = structlog.get_logger()


class NginxController:
    """Runs ``nginx -t`` and ``nginx -s reload``."""

    def __init__(self, config: VirtualHostConfig) -> None:
        self.config = config

    def _argv(self, *args: str) -> list[str]:
        argv = [self.config.nginx_binary, *args]
        if self.config.use_sudo:
            argv.insert(0, "sudo")
        return argv

    def command(self, *args: str) -> str:
        return shlex.join(self._argv(*args))

    async def test(self) -> CommandResult:
        result = await run_command(self._argv("-t"), timeout=self.config.command_timeout)
        if not result.ok:
            logger.error("nginx_config_test_failed", error=result.error)
        return result

    async def reload(self) -> CommandResult:
        result = await run_command(self._argv("-s", "reload"), timeout=self.config.command_timeout)
        if result.ok:
            logger.info("nginx_reloaded")
        else:
            logger.error("nginx_reload_failed", error=result.error)
        return result
