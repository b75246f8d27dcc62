"""modsync configuration.

``ServerConfig`` holds the listen parameters the build process supplies in
its ``config`` message.  ``RuntimeConfig`` holds process-level options from
the CLI and the optional ``modsync.yaml`` / ``modsync.toml`` file.  Both are
frozen after creation.
"""

import ssl
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from modsync._errors import ConfigError


@dataclass(frozen=True, slots=True)
class TLSMaterial:
    """PEM-encoded certificate chain and private key.

    The build tool reads the files itself and sends their text, so the
    material arrives as strings rather than paths.

    """

    cert: str
    key: str
    passphrase: str | None = field(default=None, repr=False)


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """Listen parameters for the client-facing endpoint.

    Attributes:
        hostname: Bind address.
        port: Bind port (``0`` picks a free port).
        tls: Certificate material; ``None`` serves plain WebSocket.

    """

    hostname: str = "localhost"
    port: int = 3123
    tls: TLSMaterial | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 65535:
            msg = f"port out of range: {self.port}"
            raise ConfigError(msg)

    @property
    def scheme(self) -> str:
        return "wss" if self.tls is not None else "ws"

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.hostname}:{self.port}"

    def ssl_context(self) -> ssl.SSLContext | None:
        """Build a server-side SSL context, or ``None`` for plain transport.

        ``load_cert_chain`` only reads from files, so the PEM text is written
        to a private temporary directory that is removed once loaded.

        Raises:
            ConfigError: If the certificate or key cannot be loaded.

        """
        if self.tls is None:
            return None

        context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
        with tempfile.TemporaryDirectory(prefix="modsync-tls-") as tmp:
            cert_path = Path(tmp) / "cert.pem"
            key_path = Path(tmp) / "key.pem"
            cert_path.write_text(self.tls.cert)
            key_path.write_text(self.tls.key)
            key_path.chmod(0o600)
            try:
                context.load_cert_chain(
                    cert_path, key_path, password=self.tls.passphrase,
                )
            except (ssl.SSLError, OSError) as exc:
                msg = f"Invalid TLS material: {exc}"
                raise ConfigError(msg) from exc
        return context


@dataclass(frozen=True, slots=True)
class RuntimeConfig:
    """Process-level options.

    Attributes:
        root: Directory searched for ``modsync.yaml`` / ``modsync.toml``.
        control_fd: File descriptor of the bidirectional control pipe.  The
            build tool spawns the server with an extra pipe on fd 3.
        stdio: Use stdin/stdout as the control channel instead of ``control_fd``.
        hostname: Default bind address until the build process sends ``config``.
        port: Default bind port until the build process sends ``config``.
        max_events: Capacity of the in-memory event log.
        quiet: Suppress stderr diagnostics.

    """

    root: Path = field(default_factory=Path.cwd)
    control_fd: int = 3
    stdio: bool = False
    hostname: str = "localhost"
    port: int = 3123
    max_events: int = 10_000
    quiet: bool = False

    def __post_init__(self) -> None:
        if not self.root.is_absolute():
            object.__setattr__(self, "root", self.root.resolve())
        if self.control_fd < 0:
            msg = f"control_fd must be non-negative, got {self.control_fd}"
            raise ConfigError(msg)
        if self.max_events <= 0:
            msg = f"max_events must be positive, got {self.max_events}"
            raise ConfigError(msg)

    @property
    def default_server(self) -> ServerConfig:
        """Listen parameters used when no ``config`` message has arrived."""
        return ServerConfig(hostname=self.hostname, port=self.port)
