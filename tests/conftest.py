"""Shared fixtures: in-memory sync server and daemon built on aiohttp.web."""

from typing import Dict, List, Optional, Set, Tuple, Union
from urllib.parse import quote

import pytest
from aiohttp import web, BasicAuth
from aiohttp.test_utils import TestServer

from savebutton.config.store import AccountConfig, ConfigStore
from savebutton.storage import KeyValueStore, LocalFileStore


EMAIL = "reader@example.com"
PASSWORD = "correct horse battery staple"


class FakeSyncServer:
    """Minimal implementation of the /api/v1 wire protocol."""

    def __init__(self, email: str = EMAIL, password: str = PASSWORD):
        self.email = email
        self.password = password
        self.files: Dict[str, Dict[str, bytes]] = {"anga": {}, "meta": {}}
        self.words: Dict[str, Dict[str, Union[str, bytes]]] = {}

        # failure injection
        self.status_overrides: Dict[Tuple[str, str], int] = {}
        self.upload_status: Dict[str, int] = {}
        self.force_status: Optional[int] = None

        self.requests: List[Tuple[str, str]] = []
        self.uploads: List[Tuple[str, str, bytes, str]] = []

        self.app = web.Application()
        self.app.router.add_get("/api/v1/{email}/{collection}", self.handle_listing)
        self.app.router.add_get("/api/v1/{email}/{collection}/{name}", self.handle_get)
        self.app.router.add_post("/api/v1/{email}/{collection}/{name}", self.handle_post)
        self.app.router.add_get("/api/v1/{email}/words/{namespace}/{name}", self.handle_word)

    # helpers -------------------------------------------------------------

    def _check(self, request: web.Request) -> Optional[web.Response]:
        self.requests.append((request.method, request.path))
        if self.force_status is not None:
            return web.Response(status=self.force_status, text="forced")

        override = self.status_overrides.get((request.method, request.path))
        if override is not None:
            return web.Response(status=override, text="override")

        header = request.headers.get("Authorization")
        if not header:
            return web.Response(status=401)
        auth = BasicAuth.decode(header, encoding="utf-8")
        if auth.login != self.email or auth.password != self.password:
            return web.Response(status=401)
        if request.match_info["email"] != self.email:
            return web.Response(status=403)
        return None

    @staticmethod
    def _listing(names: Set[str]) -> web.Response:
        body = "\n".join(quote(name, safe="") for name in sorted(names))
        return web.Response(text=body + "\n" if body else "")

    def write_paths(self) -> List[Tuple[str, str]]:
        return [entry for entry in self.requests if entry[0] == "POST"]

    # handlers ------------------------------------------------------------

    async def handle_listing(self, request: web.Request) -> web.Response:
        failure = self._check(request)
        if failure:
            return failure
        collection = request.match_info["collection"]
        if collection == "words":
            return self._listing(set(self.words))
        if collection not in self.files:
            return web.Response(status=404)
        return self._listing(set(self.files[collection]))

    async def handle_get(self, request: web.Request) -> web.Response:
        failure = self._check(request)
        if failure:
            return failure
        collection = request.match_info["collection"]
        name = request.match_info["name"]
        if collection == "words":
            if name not in self.words:
                return web.Response(status=404)
            return self._listing(set(self.words[name]))
        content = self.files.get(collection, {}).get(name)
        if content is None:
            return web.Response(status=404)
        return web.Response(body=content)

    async def handle_word(self, request: web.Request) -> web.Response:
        failure = self._check(request)
        if failure:
            return failure
        text = self.words.get(request.match_info["namespace"], {}).get(request.match_info["name"])
        if text is None:
            return web.Response(status=404)
        if isinstance(text, bytes):
            return web.Response(body=text)
        return web.Response(text=text)

    async def handle_post(self, request: web.Request) -> web.Response:
        failure = self._check(request)
        if failure:
            return failure
        collection = request.match_info["collection"]
        name = request.match_info["name"]
        if collection not in self.files:
            return web.Response(status=405)

        form = await request.post()
        field = form.get("file")
        if field is None or not hasattr(field, "file"):
            return web.Response(status=422, text="missing file field")
        content = field.file.read()
        self.uploads.append((collection, name, content, field.content_type))

        if name in self.upload_status:
            return web.Response(status=self.upload_status[name])
        if name in self.files[collection]:
            return web.Response(status=409)
        self.files[collection][name] = content
        return web.Response(status=201)


class FakeDaemon:
    """Records what the bridge pushes."""

    def __init__(self):
        self.received: List[Tuple[str, bytes]] = []
        self.app = web.Application()
        self.app.router.add_get("/health", self.handle_health)
        self.app.router.add_post("/{tail:.*}", self.handle_post)

    async def handle_health(self, request: web.Request) -> web.Response:
        return web.Response(text="ok")

    async def handle_post(self, request: web.Request) -> web.Response:
        self.received.append((request.path, await request.read()))
        return web.Response(status=200)


@pytest.fixture
async def fake_server():
    """Running fake sync server."""
    server = FakeSyncServer()
    test_server = TestServer(server.app)
    await test_server.start_server()
    server.url = str(test_server.make_url("/")).rstrip("/")
    yield server
    await test_server.close()


@pytest.fixture
async def fake_daemon():
    """Running fake companion daemon."""
    daemon = FakeDaemon()
    test_server = TestServer(daemon.app)
    await test_server.start_server()
    daemon.url = str(test_server.make_url("/")).rstrip("/")
    yield daemon
    await test_server.close()


@pytest.fixture
def account(fake_server) -> AccountConfig:
    return AccountConfig(server=fake_server.url, email=EMAIL, password=PASSWORD, configured=True)


@pytest.fixture
def file_store(tmp_path) -> LocalFileStore:
    store = LocalFileStore(tmp_path / "kaya")
    store.ensure_dirs()
    return store


@pytest.fixture
def kv_store(tmp_path) -> KeyValueStore:
    return KeyValueStore(tmp_path / "kaya" / "storage.json")


@pytest.fixture
def config_store(kv_store) -> ConfigStore:
    return ConfigStore(kv_store)
