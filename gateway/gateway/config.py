"""Server settings.

Read from ``JSONRPC_GATEWAY_*`` environment variables, after loading a
``.env`` file from the working directory if one exists.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "JSONRPC_GATEWAY_"


@dataclass(slots=True)
class Settings:
    host: str = "127.0.0.1"
    port: int = 8100
    path: str = "/rpc"
    log_level: str = "info"

    @classmethod
    def from_env(cls, env_file: str | os.PathLike | None = None) -> "Settings":
        load_dotenv(env_file or os.path.join(Path.cwd(), ".env"))
        defaults = cls()

        def get(name: str, default: str | None) -> str | None:
            return os.getenv(ENV_PREFIX + name, default)

        port = get("PORT", None)
        return cls(
            host=get("HOST", defaults.host),
            port=int(port) if port else defaults.port,
            path=get("PATH", defaults.path),
            log_level=get("LOG_LEVEL", defaults.log_level).lower(),
        )
