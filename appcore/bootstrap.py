from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

from appcore.core.auth.capabilities import RoleMap, load_role_capabilities
from appcore.core.auth.nonce import NonceManager
from appcore.core.auth.provider import get_auth_provider
from appcore.core.cache.store import CacheStore, InMemoryCacheStore, RedisCacheStore
from appcore.core.config import Settings
from appcore.core.crud.controller import register_controller
from appcore.core.db.sqlite import SQLiteStore
from appcore.core.dispatch.dispatcher import RequestDispatcher
from appcore.core.extensions.loader import fingerprint, load_extension_modules
from appcore.core.extensions.registry import ExtensionRegistry
from appcore.entities.platform_staff import schema as staff_schema
from appcore.entities.platform_staff.cache import PlatformStaffCacheManager
from appcore.entities.platform_staff.controller import PlatformStaffController
from appcore.entities.platform_staff.datatable import PlatformStaffDataTableModel
from appcore.entities.platform_staff.model import PlatformStaffModel

log = logging.getLogger("appcore.bootstrap")

DEFAULT_EXTENSIONS_DIR = Path(__file__).resolve().parent / "plugins" / "datatable"

STAFF_DATATABLE_ACTION = "platform_staff_datatable"


@dataclass
class Container:
    """Everything one application instance shares across requests."""

    settings: Settings
    db: Any
    extensions: ExtensionRegistry
    cache_store: CacheStore
    staff_cache: PlatformStaffCacheManager
    nonces: NonceManager
    dispatcher: RequestDispatcher
    auth_provider: Any = None
    role_map: Optional[RoleMap] = None
    loaded_extensions: List[str] = field(default_factory=list)
    extensions_fingerprint: str = ""

    def staff_model(self) -> PlatformStaffModel:
        return PlatformStaffModel(self.db, self.extensions, self.staff_cache)

    def staff_datatable(self) -> PlatformStaffDataTableModel:
        return PlatformStaffDataTableModel(self.db, self.extensions, self.staff_cache)

    def staff_controller(self) -> PlatformStaffController:
        return PlatformStaffController(self.staff_model())


def build_cache_store(settings: Settings) -> CacheStore:
    if settings.cache_backend == "redis":
        return RedisCacheStore.from_url(settings.redis_url)
    if settings.cache_backend == "memory":
        return InMemoryCacheStore()
    raise ValueError(f"Unsupported cache backend: {settings.cache_backend}")


def build_container(
    settings: Optional[Settings] = None,
    db: Any = None,
    cache_store: Optional[CacheStore] = None,
    extensions_dir: Optional[str] = None,
) -> Container:
    """
    Composition root: builds the registry, stores and dispatcher, loads the
    feature modules and registers the listing and staff CRUD actions.
    """
    settings = settings or Settings.from_env()

    if db is None:
        db = SQLiteStore(settings.database_path)
        staff_schema.install(db)

    store = cache_store if cache_store is not None else build_cache_store(settings)
    extensions = ExtensionRegistry()
    staff_cache = PlatformStaffCacheManager(
        store,
        group=settings.cache_group,
        default_ttl=settings.cache_default_ttl,
        listing_ttl=settings.listing_cache_ttl,
        uncached_contexts=settings.uncached_contexts,
    )
    nonces = NonceManager(settings.nonce_secret, settings.nonce_ttl_seconds)
    dispatcher = RequestDispatcher(extensions, nonces, settings)

    auth_provider = get_auth_provider(settings.auth_mode, settings.env) if settings.auth_enabled else None
    role_map = load_role_capabilities(settings.roles_file) if settings.roles_file else None

    container = Container(
        settings=settings,
        db=db,
        extensions=extensions,
        cache_store=store,
        staff_cache=staff_cache,
        nonces=nonces,
        dispatcher=dispatcher,
        auth_provider=auth_provider,
        role_map=role_map,
    )

    directory = extensions_dir or settings.extensions_dir or str(DEFAULT_EXTENSIONS_DIR)
    container.loaded_extensions = load_extension_modules(extensions, directory)
    if Path(directory).is_dir():
        container.extensions_fingerprint = fingerprint(directory)

    dispatcher.register(STAFF_DATATABLE_ACTION, container.staff_datatable)
    register_controller(dispatcher, container.staff_controller, PlatformStaffController)

    log.info(
        "container ready env=%s cache=%s extensions=%s fingerprint=%s",
        settings.env,
        settings.cache_backend,
        ",".join(container.loaded_extensions),
        container.extensions_fingerprint,
    )
    return container
