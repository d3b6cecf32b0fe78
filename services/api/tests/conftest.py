import importlib

import anyio
import httpx
import pytest


@pytest.fixture
def api_app(monkeypatch, tmp_path):
    artifact_root = tmp_path / "artifacts"
    monkeypatch.setenv("ARTIFACT_ROOT", str(artifact_root))
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.delenv("CORS_ORIGINS", raising=False)

    from services.api import app as app_module

    importlib.reload(app_module)

    transport = httpx.ASGITransport(app=app_module.app)
    async_client = httpx.AsyncClient(transport=transport, base_url="http://testserver")

    class SyncClient:
        def __init__(self, default_headers: dict[str, str]):
            self._default_headers = default_headers

        def request(self, method: str, url: str, **kwargs):
            headers = dict(self._default_headers)
            extra_headers = kwargs.pop("headers", None) or {}
            headers.update(extra_headers)
            return anyio.run(lambda: async_client.request(method, url, headers=headers, **kwargs))

        def get(self, url: str, **kwargs):
            return self.request("GET", url, **kwargs)

        def post(self, url: str, **kwargs):
            return self.request("POST", url, **kwargs)

    try:
        yield {
            "client": SyncClient({}),
            "module": app_module,
            "artifact_root": artifact_root,
            "data_dir": tmp_path,
        }
    finally:
        anyio.run(async_client.aclose)


@pytest.fixture
def dataset_file(api_app):
    path = api_app["data_dir"] / "markers.csv"
    path.write_text(
        "marker_1,marker_2,age,cell_type\n"
        "1,8,10,A\n"
        "2,6,20,A\n"
        "3,5,30,B\n"
        "4,1,40,B\n",
        encoding="utf-8",
    )
    return str(path)
