from logging import Logger
from urllib.parse import parse_qsl, urlsplit

import pytest

from event_exporter.config import Credentials, RunConfig
from logger.basic_logger import setup_logger

FIXED_NOW = 1_700_000_000


# ----- simple logger used across tests -----
class Log:
    def __init__(self):
        self.msgs = []

    def info(self, msg, *a, **k):
        self.msgs.append(("info", msg))

    def error(self, msg, *a, **k):
        self.msgs.append(("error", msg))

    def text(self):
        return "\n".join(m for _, m in self.msgs)


@pytest.fixture
def capture_log():
    return Log()


# ----- lightweight HTTP fakes -----
class FakeResponse:
    def __init__(self, *, url="", json_data=None, text="", status_code=200):
        self.url = url
        self._json = json_data
        self.text = text
        self.content = (text or "").encode("utf-8")
        self.status_code = status_code

    def json(self):
        if self._json is None:
            raise ValueError("No JSON object could be decoded")
        return self._json


class FakeSession:
    """
    mapping = {
      "https://host/api/2.0/export": [FakeResponse(...), FakeResponse(...)],
    }
    Requests are matched on the URL without its query string and recorded
    (with the parsed query) in .calls.
    """

    def __init__(self, mapping):
        self._m = {k: list(v) for k, v in mapping.items()}
        self.calls = []
        self.headers = {}
        self.proxies = {}
        self.verify = True

    def get(self, url, **kw):
        parts = urlsplit(url)
        base = f"{parts.scheme}://{parts.netloc}{parts.path}"
        self.calls.append({"url": base, "query": dict(parse_qsl(parts.query)), **kw})
        q = self._m.get(base, [])
        resp = q.pop(0) if q else FakeResponse(text="")
        resp.url = url
        return resp


@pytest.fixture
def fake_sess():
    return FakeSession


@pytest.fixture
def credentials():
    return Credentials(api_key="test-key", api_secret="s3cr3t")


@pytest.fixture
def run_config(tmp_path):
    return RunConfig(output_root=str(tmp_path / "exports"))


@pytest.fixture
def fixed_now():
    return lambda: FIXED_NOW


@pytest.fixture(scope="session", autouse=True)
def log() -> Logger:
    log = setup_logger()
    return log


@pytest.fixture
def fake_response():
    return FakeResponse
