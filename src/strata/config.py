"""Host configuration.

HostConfig is a frozen dataclass: immutable after creation,
IDE-autocompletable, no string-key dict lookups. Host-config fragments
are plain ``HostConfig -> HostConfig`` functions, usually a
``dataclasses.replace`` call::

    app = Application().host_config(lambda host: replace(host, log_level="debug"))
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

type LoggingConfigurator = Callable[[logging.Logger], None]


@dataclass(frozen=True, slots=True)
class HostConfig:
    """Process-level settings consumed by the launcher.

    All fields have sensible defaults. Override what you need::

        HostConfig(web_root="public", log_level="debug")
    """

    # Content
    content_root: str | Path = "."
    web_root: str | Path = "wwwroot"

    # Logging
    log_level: str = "info"
    logging_configurators: tuple[LoggingConfigurator, ...] = ()

    # Reverse-proxy hosting (IIS / HttpPlatformHandler)
    iis_integration: bool = False
    root_path: str = ""
    proxy_headers: bool = False
    forwarded_allow_ips: str = "127.0.0.1"

    # Server
    debug: bool = False
    lifespan: str = "auto"
    graceful_shutdown_timeout: float | None = None
    ssl_certfile: str | None = None
    ssl_keyfile: str | None = None

    @property
    def web_root_path(self) -> Path:
        """``web_root`` resolved against ``content_root``."""
        root = Path(self.web_root)
        if root.is_absolute():
            return root
        return Path(self.content_root) / root
