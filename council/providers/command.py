"""Provider that shells out to a local CLI wrapper (prompt on stdin, answer on stdout)."""

import asyncio
import logging
import shutil

from config.config_loader import ModelConfig
from council.providers.base import AIProvider, ProviderError

logger = logging.getLogger(__name__)


class CommandProvider(AIProvider):
    """Runs ``<command> --print`` and reads the reply from stdout.

    The wrapper owns its own credentials, so no API key is checked here.
    """

    def __init__(self, config: ModelConfig) -> None:
        super().__init__(config)
        if not config.command:
            raise ProviderError(config.name, "command is required for cli provider")
        if shutil.which(config.command[0]) is None:
            raise ProviderError(config.name, f"Command not found: {config.command[0]}")
        self._argv = [*config.command, "--print"]

    async def _complete(self, prompt: str) -> tuple[str, int | None]:
        proc = await asyncio.create_subprocess_exec(
            *self._argv,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await proc.communicate(prompt.encode("utf-8"))
        except asyncio.CancelledError:
            # Timeout or debate deadline: don't leave the wrapper running
            proc.kill()
            await proc.wait()
            raise

        if proc.returncode != 0:
            detail = stderr.decode("utf-8", errors="replace").strip().splitlines()
            raise ProviderError(
                self.name(),
                f"Command exited with code {proc.returncode}: {detail[-1] if detail else 'no stderr'}",
            )
        return stdout.decode("utf-8", errors="replace").strip(), None
