"""Shared pytest fixtures for all tests."""

import json
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator, List

import httpx
import pytest
from fastapi.testclient import TestClient

from cli.config import Config
from server.database import init_database
from server.retry import RetryPolicy
from server.service_locator import set_telegram_client
from server.telegram_client import TelegramClient

BOT_TOKEN = "123456:TEST-token_abc"


class OneShotStream(httpx.AsyncByteStream):
    """Response body delivered as an unread stream, as a real upstream would."""

    def __init__(self, body: bytes):
        self.body = body

    async def __aiter__(self):
        yield self.body


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .relaybox directory
    """
    config_dir = tmp_path / '.relaybox'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Args:
        temp_config_dir: Temporary config directory fixture

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample file for testing file uploads.
    """
    file_path = tmp_path / 'test.txt'
    file_path.write_text('Sample content for testing')
    return file_path


@pytest.fixture
def test_db(monkeypatch) -> Generator[Path, None, None]:
    """
    Create a temporary test database for each test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        monkeypatch.setattr("server.database.DATABASE_PATH", str(db_path))
        monkeypatch.setattr("server.config.DATABASE_PATH", str(db_path))
        init_database()
        yield db_path


class FakeTelegram:
    """
    In-memory stand-in for the Bot API, driven through httpx.MockTransport.

    Sent files get sequential ids. Tests can queue canned responses per
    method (status code, payload) that are served before the default
    behaviour kicks in.
    """

    def __init__(self):
        self.calls: List[Dict] = []
        self.queued: Dict[str, List[httpx.Response]] = {}
        self.files: Dict[str, bytes] = {}
        self.download_headers: Dict[str, str] = {}
        self._counter = 0

    def queue(self, method: str, status_code: int, payload) -> None:
        self.queued.setdefault(method, []).append(httpx.Response(status_code, json=payload))

    def queue_error(self, method: str, description: str, error_code: int = 400) -> None:
        self.queue(method, error_code, {"ok": False, "error_code": error_code, "description": description})

    def methods(self) -> List[str]:
        return [call["method"] for call in self.calls]

    def _next_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}{self._counter}"

    def _file_message(self, kind: str) -> Dict:
        file_id = self._next_id(kind[:3].upper())
        self.files[file_id] = f"content of {file_id}".encode()
        if kind == "photo":
            thumb_id = self._next_id("THUMB")
            self.files[thumb_id] = b"small"
            return {"message_id": self._counter, "photo": [
                {"file_id": thumb_id, "file_size": 100, "width": 90, "height": 90},
                {"file_id": file_id, "file_size": 5000, "width": 800, "height": 800},
            ]}
        return {"message_id": self._counter, kind: {"file_id": file_id}}

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.startswith(f"/file/bot{BOT_TOKEN}/"):
            file_id = path.rsplit("/", 1)[1]
            self.calls.append({"method": "download", "file_id": file_id, "headers": dict(request.headers)})
            if file_id not in self.files:
                return httpx.Response(
                    404,
                    stream=OneShotStream(b"Not Found"),
                    headers={"content-type": "text/plain; charset=utf-8"},
                )
            return httpx.Response(
                200,
                stream=OneShotStream(self.files[file_id]),
                headers={"content-type": "application/octet-stream", **self.download_headers},
            )

        method = path.rsplit("/", 1)[1]
        body = request.read().decode("latin-1")
        self.calls.append({"method": method, "body": body, "params": dict(request.url.params)})

        if self.queued.get(method):
            return self.queued[method].pop(0)

        if method in ("sendPhoto", "sendVideo", "sendDocument"):
            kind = method[len("send"):].lower()
            return httpx.Response(200, json={"ok": True, "result": self._file_message(kind)})

        if method == "sendMediaGroup":
            media = json.loads(_form_field(body, "media"))
            result = [self._file_message(entry["type"]) for entry in media]
            return httpx.Response(200, json={"ok": True, "result": result})

        if method == "getFile":
            file_id = request.url.params.get("file_id")
            if file_id not in self.files:
                return httpx.Response(400, json={
                    "ok": False, "error_code": 400, "description": "Bad Request: invalid file_id"
                })
            return httpx.Response(200, json={"ok": True, "result": {"file_id": file_id, "file_path": file_id}})

        return httpx.Response(404, json={"ok": False, "error_code": 404, "description": "Not Found"})


def _form_field(body: str, name: str) -> str:
    marker = f'name="{name}"\r\n\r\n'
    start = body.index(marker) + len(marker)
    return body[start:body.index("\r\n", start)]


@pytest.fixture
def fake_telegram() -> FakeTelegram:
    return FakeTelegram()


@pytest.fixture
def make_telegram_client(fake_telegram) -> Callable[..., TelegramClient]:
    def factory(**policy_overrides) -> TelegramClient:
        policy = RetryPolicy(**{"base_delay_seconds": 0, **policy_overrides})
        return TelegramClient(
            bot_token=BOT_TOKEN,
            chat_id="-100200300",
            api_base="https://api.telegram.test",
            retry_policy=policy,
            transport=httpx.MockTransport(fake_telegram.handler),
        )
    return factory


@pytest.fixture
def telegram_client(make_telegram_client) -> TelegramClient:
    return make_telegram_client()


@pytest.fixture
def client(test_db, telegram_client) -> Generator[TestClient, None, None]:
    """
    TestClient wired to the fake upstream and a temporary database.
    """
    from server.main import app

    set_telegram_client(telegram_client)
    with TestClient(app) as test_client:
        yield test_client
    set_telegram_client(None)
