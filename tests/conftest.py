import asyncio
import inspect
import os
import sys
import tempfile
from pathlib import Path

_test_tmp_dir = tempfile.mkdtemp(prefix="membership_test_")
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_test_tmp_dir) / 'app.db'}"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.setdefault("LOG_LEVEL", "WARNING")
for _name in ("WECHAT_APPID", "WECHAT_SECRET", "WECHAT_REDIRECT", "ADMIN_PASSWORD"):
    os.environ.pop(_name, None)

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from membership.api import deps  # noqa: E402
from membership.app import app  # noqa: E402
from membership.core import get_session, hash_password  # noqa: E402
from membership.models import Role  # noqa: E402
from membership.services.memory_store import MemoryCredentialStore  # noqa: E402
from membership.services.store import SqlCredentialStore  # noqa: E402
from membership.services.tokens import TokenIssuer  # noqa: E402
from membership.services.wechat import WeChatClient, WeChatSettings  # noqa: E402

TEST_SECRET = "unit-test-signing-key"

WECHAT_SETTINGS = WeChatSettings(
    appid="wx-app",
    secret="wx-secret",
    redirect_uri="https://members.example.com/wechat/callback",
    platform="qr",
    timeout=1.0,
)


def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames
            if name in pyfuncitem.funcargs
        }
        asyncio.run(pyfuncitem.obj(**call_kwargs))
        return True
    return None


class FakeWeChat:
    """Scriptable stand-in for the WeChat token and userinfo endpoints."""

    def __init__(self):
        self.token_payload = {
            "access_token": "provider-access",
            "openid": "openid-1",
            "unionid": "union-1",
        }
        self.userinfo_payload = {"nickname": "Lin", "headimgurl": "https://img.example/lin.png"}
        self.userinfo_status = 200
        self.token_exception = None
        self.requests = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/sns/oauth2/access_token"):
            if self.token_exception is not None:
                raise self.token_exception
            return httpx.Response(200, json=self.token_payload)
        if request.url.path.endswith("/sns/userinfo"):
            return httpx.Response(self.userinfo_status, json=self.userinfo_payload)
        return httpx.Response(404, json={"errcode": 404})

    def client(self, settings: WeChatSettings = WECHAT_SETTINGS) -> WeChatClient:
        return WeChatClient(settings, transport=httpx.MockTransport(self.handler))


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    SQLModel.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed database so separate connections really contend."""

    test_engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def db_session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def sql_store(db_session):
    return SqlCredentialStore(db_session)


@pytest.fixture
def memory_store():
    return MemoryCredentialStore()


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        return MemoryCredentialStore()
    return request.getfixturevalue("sql_store")


@pytest.fixture
def issuer():
    return TokenIssuer(TEST_SECRET)


@pytest.fixture
def fake_wechat():
    return FakeWeChat()


def make_account(store, email, password="pw", *, approved=False, role=Role.NORMAL.value):
    account = store.create_account(email=email, password_hash=hash_password(password), role=role)
    if approved:
        account = store.set_approved(account.id, None)
    return account


@pytest.fixture
def client(engine, issuer, fake_wechat):
    def _session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[deps.get_token_issuer] = lambda: issuer
    app.dependency_overrides[deps.get_wechat_client] = lambda: fake_wechat.client()
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def api_store(engine):
    """Store sharing the API's database, for arranging state in tests."""

    with Session(engine) as session:
        yield SqlCredentialStore(session)
