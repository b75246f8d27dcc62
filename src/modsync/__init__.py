"""modsync — live module synchronization for hot module replacement.

A long-running process that holds the authoritative table of named,
content-hashed build modules and keeps every connected browser consistent
with it.  The build process streams module records over a private pipe and
commits them in batches; browsers sync once on connect and then receive
every committed delta.

Quick start::

    import modsync

    modsync.run(".", control_fd=3)

Pieces::

    modsync.ModuleTable      the authoritative name -> record table
    modsync.reconcile        diff a client's view against the table
    modsync.SyncService      table + control channel + listener, wired

"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from modsync.app import SyncService

__version__ = "0.1.0"
__all__ = [
    "ModuleTable",
    "RuntimeConfig",
    "ServerConfig",
    "SyncService",
    "__version__",
    "reconcile",
    "run",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import modsync`` fast; the server stack is only imported when
    one of these names is first used.
    """
    if name == "ModuleTable":
        from modsync.modules.table import ModuleTable

        return ModuleTable

    if name == "reconcile":
        from modsync.modules.sync import reconcile

        return reconcile

    if name in ("RuntimeConfig", "ServerConfig"):
        from modsync import config

        return getattr(config, name)

    if name == "SyncService":
        from modsync.app import SyncService

        return SyncService

    if name == "run":
        from modsync.app import run

        return run

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
