import pytest
from fastapi.testclient import TestClient

from appcore.api.main import create_app
from appcore.bootstrap import build_container
from appcore.core.auth.context import AuthContext
from appcore.core.auth.models import Principal
from appcore.core.cache.store import InMemoryCacheStore
from appcore.core.config import Settings
from appcore.core.db.sqlite import SQLiteStore
from appcore.core.observability.metrics import reset_metrics
from appcore.entities.platform_staff import schema

NONCE_SECRET = "test-nonce-secret"

STAFF_NAMES = [
    "Alice Anders", "Budi Santoso", "Citra Lestari", "Dewi Kartika", "Eko Prasetyo",
    "Fajar Nugroho", "Rina_Putri", "Hadi Wijaya", "Indah Sari", "Joko Susilo",
    "Kurnia Dewi", "Lina Marlina", "Made Wirawan", "Nina Agustina", "Oki Setiawan",
    "Putu Ayu", "Qori Rahman", "Rudi Hartono", "Sari Wulandari", "Tono Sugiarto",
    "Umar Said", "Vina Panduwinata", "Wawan Kurniawan", "Yanti Susanti", "Zaki Mubarak",
]
FIXTURE_DEPARTMENTS = ("IT", "Finance", "HR", "Marketing")


def seed_staff(db: SQLiteStore) -> None:
    """25 staff rows; ids 5, 10, 15, 20, 25 are inactive; departments cycle IT/Finance/HR/Marketing."""
    for i, name in enumerate(STAFF_NAMES, start=1):
        db.execute(
            f"INSERT INTO {schema.USERS_TABLE} (id, user_login, user_email) VALUES (?, ?, ?)",
            (i, f"user{i}", f"user{i}@example.test"),
        )
        db.execute(
            f"""
            INSERT INTO {schema.TABLE}
                (id, user_id, employee_id, full_name, department, hire_date, phone, status, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                i,
                i,
                f"STAFF-{i:03d}",
                name,
                FIXTURE_DEPARTMENTS[(i - 1) % 4],
                f"2023-{(i % 12) + 1:02d}-15",
                f"+62 812 0000 {i:04d}",
                "inactive" if i % 5 == 0 else "active",
                f"2024-01-{i:02d} 09:00:00",
                f"2024-01-{i:02d} 09:00:00",
            ),
        )


@pytest.fixture(autouse=True)
def _clean_metrics():
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("APPCORE_AUTH_MODE", "APPCORE_ENV", "APPCORE_DEBUG", "APPCORE_ROLES_FILE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def settings():
    return Settings(env="dev", auth_enabled=True, auth_mode="dev", nonce_secret=NONCE_SECRET)


@pytest.fixture()
def db():
    store = SQLiteStore(":memory:")
    schema.install(store)
    seed_staff(store)
    yield store
    store.close()


@pytest.fixture()
def cache_store():
    return InMemoryCacheStore()


@pytest.fixture()
def container(settings, db, cache_store):
    return build_container(settings, db=db, cache_store=cache_store)


@pytest.fixture()
def app(container):
    return create_app(container=container)


@pytest.fixture()
def admin_headers():
    return {"Authorization": "Bearer dev_admin_token", "X-Requested-With": "XMLHttpRequest"}


@pytest.fixture()
def staff_headers():
    return {"Authorization": "Bearer dev_staff_token", "X-Requested-With": "XMLHttpRequest"}


@pytest.fixture()
def viewer_headers():
    return {"Authorization": "Bearer dev_viewer_token", "X-Requested-With": "XMLHttpRequest"}


@pytest.fixture()
def client(app, admin_headers):
    return TestClient(app, headers=admin_headers)


@pytest.fixture()
def anon_client(app):
    return TestClient(app)


def make_auth(subject: str, roles, user_id=None) -> AuthContext:
    return AuthContext.for_principal(Principal(subject=subject, roles=list(roles), user_id=user_id))


@pytest.fixture()
def admin_auth():
    return make_auth("dev_admin", ["administrator"], 1)


@pytest.fixture()
def staff_admin_auth():
    return make_auth("dev_staff_admin", ["platform_admin"], 2)


@pytest.fixture()
def staff_auth():
    return make_auth("dev_staff", ["platform_staff"], 3)


@pytest.fixture()
def viewer_auth():
    return make_auth("dev_viewer", ["viewer"], 4)
