import pytest

from appcore.bootstrap import build_cache_store, build_container
from appcore.core.cache.store import InMemoryCacheStore, RedisCacheStore
from appcore.core.config import Settings


def test_defaults(monkeypatch):
    s = Settings.from_env()
    assert s.env == "dev"
    assert s.debug is False
    assert s.cache_backend == "memory"
    assert s.listing_cache_ttl == 120
    assert s.uncached_contexts == []
    assert s.cors_origins == ["*"]
    assert s.nonce_secret


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("APPCORE_DEBUG", "yes")
    monkeypatch.setenv("APPCORE_UNCACHED_CONTEXTS", "platform_staff, audit ,")
    monkeypatch.setenv("APPCORE_LISTING_CACHE_TTL", "30")
    monkeypatch.setenv("APPCORE_CACHE_DEFAULT_TTL", "not-a-number")
    monkeypatch.setenv("APPCORE_CACHE_BACKEND", "REDIS")

    s = Settings.from_env()
    assert s.debug is True
    assert s.uncached_contexts == ["platform_staff", "audit"]
    assert s.listing_cache_ttl == 30
    assert s.cache_default_ttl == 12 * 3600
    assert s.cache_backend == "redis"


def test_prod_requires_nonce_secret(monkeypatch):
    monkeypatch.setenv("APPCORE_ENV", "prod")
    monkeypatch.delenv("APPCORE_NONCE_SECRET", raising=False)
    with pytest.raises(RuntimeError):
        Settings.from_env()

    monkeypatch.setenv("APPCORE_NONCE_SECRET", "real-secret")
    assert Settings.from_env().is_prod


def test_cache_backend_selection():
    assert isinstance(build_cache_store(Settings()), InMemoryCacheStore)
    # redis clients connect lazily
    assert isinstance(build_cache_store(Settings(cache_backend="redis")), RedisCacheStore)
    with pytest.raises(ValueError):
        build_cache_store(Settings(cache_backend="memcached"))


def test_container_applies_cache_settings(db, cache_store):
    settings = Settings(
        auth_mode="none",
        cache_group="grp",
        listing_cache_ttl=15,
        uncached_contexts=["platform_staff"],
    )
    c = build_container(settings, db=db, cache_store=cache_store)
    assert c.staff_cache.group == "grp"
    assert c.staff_cache.list_ttl == 15
    assert not c.staff_cache.is_cacheable_context("platform_staff")
    assert c.auth_provider is None
    assert c.dispatcher.actions() == [
        "create_platform_staff",
        "delete_platform_staff",
        "get_platform_staff_details",
        "get_platform_staff_stats",
        "platform_staff_datatable",
        "update_platform_staff",
    ]
    assert c.dispatcher.route("update_platform_staff").token_action == "platform_staff"


def test_container_builds_its_own_database():
    c = build_container(Settings(auth_mode="none"))
    assert c.db.fetch_value("SELECT COUNT(*) FROM app_platform_staff") == 0


def test_custom_extensions_dir(db, cache_store, tmp_path):
    c = build_container(Settings(auth_mode="none"), db=db, cache_store=cache_store, extensions_dir=str(tmp_path))
    assert c.loaded_extensions == []
    assert not c.extensions.has("datatable.can_access")
