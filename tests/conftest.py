"""Shared fixtures for modserver tests."""

import io
import json
import zipfile
from typing import Dict, List, Optional

import pytest

from modserver.models import Dependency, ModInfo


def make_mod(mod_id: str, version: str = "1.0.0", deps=None, **kwargs) -> ModInfo:
    """Build a ModInfo; deps entries are ids, (id, expr) or Dependency objects."""
    dependencies: List[Dependency] = []
    for dep in deps or []:
        if isinstance(dep, Dependency):
            dependencies.append(dep)
        elif isinstance(dep, tuple):
            dependencies.append(Dependency(mod_id=dep[0], version_expr=dep[1]))
        else:
            dependencies.append(Dependency(mod_id=dep))
    return ModInfo(
        id=mod_id,
        name=kwargs.pop("name", mod_id),
        version=version,
        dependencies=dependencies,
        **kwargs,
    )


def make_zip(files: Dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as z:
        for name, content in files.items():
            z.writestr(name, content)
    return buffer.getvalue()


class FakeResponse:
    def __init__(self, status: int, payload=None, url: str = ""):
        self.status = status
        self._payload = payload
        self.url = url

    async def json(self):
        return self._payload

    async def text(self):
        return json.dumps(self._payload)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Minimal stand-in for aiohttp.ClientSession routing GET requests by path."""

    def __init__(self, routes: Optional[Dict[str, tuple]] = None):
        self.routes = routes or {}
        self.calls: List[tuple] = []
        self.closed = False

    def get(self, url: str, params=None, **kwargs):
        self.calls.append((url, params))
        for suffix, (status, payload) in self.routes.items():
            if url.endswith(suffix):
                if isinstance(status, Exception):
                    raise status
                return FakeResponse(status, payload, url)
        return FakeResponse(404, None, url)

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_session():
    return FakeSession()
