import uvicorn

from opsportal import __main__ as entrypoint
from opsportal.config import settings


def test_main_serves_app_on_configured_address(monkeypatch):
    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    monkeypatch.setattr(settings, "host", "127.0.0.1")
    monkeypatch.setattr(settings, "port", 9123)

    entrypoint.main()

    assert calls == [("opsportal.main:app", {"host": "127.0.0.1", "port": 9123})]
