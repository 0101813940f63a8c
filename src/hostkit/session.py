"""Session boot: wire storage, the namespace tree and the three core services.

Boot order:
1. Correlation id and logging
2. Database open, legacy schema migration, table creation
3. Namespace root with the ``core`` surfaces and the module mount point
4. User properties restored onto the root
5. Persisted aliases restored into the global scope
"""

from __future__ import annotations

from collections.abc import MutableMapping
from pathlib import Path
from types import TracebackType
from typing import Any

import structlog
from rich.console import Console

from hostkit.alias import AliasRegistry, reserved_names
from hostkit.collaborators import FileStore, LocalFileStore, ProcessRunner, SubprocessRunner
from hostkit.config import HostKitConfig, load_config
from hostkit.core.logging import clear_session_id, configure_logging, set_session_id
from hostkit.modules import ModuleStore, StickytapeBundler, detect_entry_point
from hostkit.namespace import Namespace
from hostkit.observe import ObservationEngine
from hostkit.storage import Database, UserStorage, migrate_legacy_modules

logger = structlog.get_logger()


class Session:
    """A running host: namespace root, global scope and the core services."""

    def __init__(
        self,
        config: HostKitConfig,
        *,
        scope: MutableMapping[str, Any] | None = None,
        files: FileStore | None = None,
        runner: ProcessRunner | None = None,
        console: Console | None = None,
    ) -> None:
        self.config = config
        self.scope: MutableMapping[str, Any] = scope if scope is not None else {}
        self.files: FileStore = files or LocalFileStore(
            debounce_ms=config.watcher.debounce_ms,
            step_ms=config.watcher.step_ms,
            force_polling=config.watcher.force_polling,
        )
        self.runner: ProcessRunner = runner or SubprocessRunner()
        self.session_id = set_session_id()

        self.db = Database(
            config.storage.db_path,
            max_retries=config.database.max_retries,
            retry_base_delay=config.database.retry_base_delay_sec,
        )
        root_name = config.namespace.root_name
        mount_name = config.namespace.modules_mount
        migrated = migrate_legacy_modules(
            self.db,
            config.storage.modules_path,
            namespace_prefix=f"{root_name}.{mount_name}",
            entry_point_of=detect_entry_point,
        )
        self.db.create_all()

        self.root = Namespace(root_name)
        setattr(self.root, mount_name, Namespace(mount_name, path=f"{root_name}.{mount_name}"))

        bundler = (
            StickytapeBundler(
                self.runner,
                executable=config.bundler.executable,
                timeout_sec=config.bundler.timeout_sec,
            )
            if config.bundler.enabled
            else None
        )
        self.modules = ModuleStore(
            self.db,
            config.storage.modules_path,
            self.root,
            self.files,
            bundler=bundler,
            mount_name=mount_name,
        )
        self.aliases = AliasRegistry(
            self.db,
            self.root,
            self.scope,
            reserved_names(root_name, mount_name),
            console=console,
        )
        self.observers = ObservationEngine(self.root, self.files)
        self._mount_core()
        self.user = UserStorage(self.db, self.root, system_keys=set(self.root))
        self._mount_user_storage()

        self.scope[root_name] = self.root
        restored_properties = self.user.load()
        restored_aliases = self.aliases.restore()
        logger.info(
            "session_started",
            root=root_name,
            data_dir=str(config.storage.data_dir),
            migrated_modules=migrated,
            aliases=restored_aliases,
            user_properties=restored_properties,
        )

    @classmethod
    def open(
        cls,
        config: HostKitConfig | None = None,
        *,
        config_path: Path | None = None,
        setup_logging: bool = True,
        **kwargs: Any,
    ) -> Session:
        """Load configuration, configure logging and boot a session."""
        config = config or load_config(config_path)
        if setup_logging:
            configure_logging(config=config.logging)
        return cls(config, **kwargs)

    def _mount_core(self) -> None:
        store = self.modules
        registry = self.aliases
        engine = self.observers
        files = self.files
        self.root.core = Namespace(
            "core",
            {
                "modules": {
                    "save": store.save,
                    "load": store.load,
                    "list": store.list,
                    "has": store.has,
                    "remove": store.remove,
                    "remove_all": store.remove_all,
                    "get_source": store.get_source,
                },
                "alias": {
                    "set": registry.set,
                    "get": registry.get,
                    "list": registry.list,
                    "remove": registry.remove,
                    "has": registry.has,
                    "show": registry.show,
                },
                "event": {
                    "observe": engine.observe,
                    "unobserve": engine.unobserve,
                    "list": engine.list,
                },
                "io": {
                    "fs": {
                        "read": files.read,
                        "write": files.write,
                        "exists": files.exists,
                        "remove": files.remove,
                    },
                },
                "system": {"run": self.runner.run},
            },
            path=f"{self.root_name}.core",
        )

    def _mount_user_storage(self) -> None:
        user = self.user
        self.root.core.storage = Namespace(
            "storage",
            {
                "user": {
                    "set": user.set,
                    "get": user.get,
                    "has": user.has,
                    "remove": user.remove,
                    "list": user.list,
                    "load": user.load,
                }
            },
            path=f"{self.root_name}.core.storage",
        )

    @property
    def root_name(self) -> str:
        return self.config.namespace.root_name

    async def aclose(self) -> None:
        """Stop observers and release the database."""
        await self.observers.aclose()
        self.db.dispose()
        logger.info("session_closed")
        clear_session_id()

    async def __aenter__(self) -> Session:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
