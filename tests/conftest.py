import asyncio
import inspect
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

os.environ.setdefault("TEST_MODE", "true")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402
from argon2 import PasswordHasher, Type  # noqa: E402

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


from grantflow.service.orchestrator import Orchestrator  # noqa: E402
from grantflow.service.runtime import reset_runtime_for_tests  # noqa: E402
from grantflow.storage.memory import MemoryHandlers  # noqa: E402
from grantflow.storage.models import AccessToken, RefreshToken  # noqa: E402

# Every seeded user holds the "all" scope
USERS = {
    "barney": ("rubble", "rubbles all"),
    "betty": ("rubble", "rubbles all"),
    "fred": ("flintstone", "all flintstones"),
    "wilma": ("flintstone", "all flintstones"),
    "mister": ("slate", "flintstones all rubbles"),
}


def fast_hasher() -> PasswordHasher:
    """Cheap argon2 parameters so the suite does not spend seconds hashing."""
    return PasswordHasher(time_cost=1, memory_cost=1024, parallelism=1, type=Type.ID)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def put_access_token(handlers, token, scope, user_id, expires):
    access_token = AccessToken(token=token, scope=scope, user_id=user_id, expires=expires)
    handlers.access_tokens[token] = access_token
    return access_token


def put_refresh_token(handlers, token, access_token, user_id, expires):
    refresh_token = RefreshToken(
        token=token, access_token=access_token, user_id=user_id, expires=expires
    )
    handlers.refresh_tokens[token] = refresh_token
    return refresh_token


class FaultyHandlers:
    """Delegates to real handlers, raising for the methods named in ``failures``."""

    def __init__(self, inner, failures=None):
        self.inner = inner
        self.failures = dict(failures or {})
        self.calls = []

    def __getattr__(self, name):
        target = getattr(self.inner, name)
        if not inspect.iscoroutinefunction(target):
            return target

        async def _call(*args, **kwargs):
            self.calls.append(name)
            failure = self.failures.get(name)
            if failure is not None:
                if callable(failure) and not isinstance(failure, BaseException):
                    failure = failure(*args)
                if failure is not None:
                    raise failure
            return await target(*args, **kwargs)

        return _call


@pytest.fixture(autouse=True)
def reset_runtime_state():
    reset_runtime_for_tests()
    yield
    reset_runtime_for_tests()


@pytest.fixture
def handlers():
    """Handlers seeded with users and one expired token pair per user.

    Access tokens are named ``access1``..``access5`` and refresh tokens
    ``refresh1``..``refresh5``, in the order of ``USERS``.
    """
    memory = MemoryHandlers(hasher=fast_hasher())
    now = utcnow()
    for index, (username, (password, scope)) in enumerate(USERS.items(), start=1):
        memory.add_user(username, password, scope, user_id=username)
        put_access_token(memory, f"access{index}", scope, username, now)
        put_refresh_token(
            memory, f"refresh{index}", f"access{index}", username, now + timedelta(days=1)
        )
    return memory


@pytest.fixture
def orchestrator(handlers):
    return Orchestrator(handlers)


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


def pytest_configure(config):
    config.addinivalue_line("markers", "asyncio: mark test as async")
