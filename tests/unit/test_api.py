import asyncio
import json
import time

from fastapi.testclient import TestClient

from conftest import DEFAULT_FILES, make_orchestrator
from preview_orchestrator.api.main import create_app
from preview_orchestrator.config.settings import Settings
from preview_orchestrator.pipeline.orchestrator import ASK_NAME_MESSAGE
from preview_orchestrator.storage.memory import InMemoryPipelineStorage


def _app(tmp_path, storage=None, **settings):
    storage = storage or InMemoryPipelineStorage()
    orchestrator = make_orchestrator(tmp_path, storage=storage)
    app = create_app(
        storage=storage,
        settings_override=Settings(_env_file=None, proxy_max_attempts=1, **settings),
        orchestrator=orchestrator,
    )
    return app, storage, orchestrator


def _project_with_code(storage) -> str:
    async def _seed() -> str:
        project = await storage.create_project(title="Foo", prompt="a marketplace called Foo")
        for item in DEFAULT_FILES:
            await storage.append_artifact(project.project_id, kind="code", path=item["path"], content=item["content"])
        return project.project_id

    return asyncio.run(_seed())


def test_health_endpoint(tmp_path) -> None:
    app, _, _ = _app(tmp_path)
    response = TestClient(app).get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "preview-orchestrator"}


def test_unnamed_brief_waits_for_a_name(tmp_path) -> None:
    app, _, _ = _app(tmp_path)
    client = TestClient(app)

    created = client.post("/projects", json={"prompt": "Build a wallet dashboard"})
    assert created.status_code == 200
    project = created.json()
    assert project["title"] == "New Project"

    messages = client.get(f"/projects/{project['project_id']}/messages").json()
    assert [message["role"] for message in messages] == ["user", "assistant"]
    assert messages[1]["content"] == ASK_NAME_MESSAGE
    assert client.get(f"/projects/{project['project_id']}/build").json() == {"status": "pending"}


def test_invalid_name_reply_is_rejected(tmp_path) -> None:
    app, _, _ = _app(tmp_path)
    client = TestClient(app)
    project_id = client.post("/projects", json={"prompt": "Build a wallet dashboard"}).json()["project_id"]

    reply = client.post(f"/projects/{project_id}/messages", json={"content": "!"})

    assert reply.status_code == 200
    assert reply.json()["content"] == "!"
    messages = client.get(f"/projects/{project_id}/messages").json()
    assert messages[-1]["content"].startswith("Please provide a valid project name")
    assert client.get(f"/projects/{project_id}").json()["title"] == "New Project"


def test_unknown_project_is_404(tmp_path) -> None:
    app, _, _ = _app(tmp_path)
    client = TestClient(app)

    assert client.get("/projects/missing").status_code == 404
    assert client.get("/projects/missing/artifacts").status_code == 404
    assert client.post("/projects/missing/build").status_code == 404
    assert client.post("/projects", json={"prompt": ""}).status_code == 422


def test_build_without_code_is_rejected(tmp_path) -> None:
    app, storage, orchestrator = _app(tmp_path)
    project = asyncio.run(storage.create_project(title="Foo", prompt="foo"))

    response = TestClient(app).post(f"/projects/{project.project_id}/build")

    assert response.status_code == 400
    assert response.json()["detail"] == "No code files found to build"
    assert not orchestrator.is_busy(project.project_id)


def test_second_build_while_busy_is_a_conflict(tmp_path) -> None:
    app, storage, orchestrator = _app(tmp_path)
    project_id = _project_with_code(storage)
    asyncio.run(orchestrator.lock_for(project_id).acquire())

    response = TestClient(app).post(f"/projects/{project_id}/build")

    assert response.status_code == 409
    assert "already in progress" in response.json()["detail"]


def test_build_runs_in_background_until_ready(tmp_path) -> None:
    app, storage, orchestrator = _app(tmp_path)
    project_id = _project_with_code(storage)

    with TestClient(app) as client:
        response = client.post(f"/projects/{project_id}/build")
        assert response.status_code == 200
        payload = response.json()
        assert payload["ok"] is True
        assert payload["previewUrl"] == f"/draft/{project_id}"
        assert payload["port"] == orchestrator.builder.ports.port_for(project_id)

        deadline = time.monotonic() + 10
        status = client.get(f"/projects/{project_id}/build").json()
        while status["status"] == "running" and time.monotonic() < deadline:
            time.sleep(0.05)
            status = client.get(f"/projects/{project_id}/build").json()
        assert status == {"status": "completed"}

        drafts = client.get(f"/projects/{project_id}/artifacts", params={"kind": "draft"}).json()
        assert [json.loads(item["content"])["buildStatus"] for item in drafts] == ["building", "ready"]


def test_draft_preview_falls_back_to_file_summary(tmp_path) -> None:
    app, storage, _ = _app(tmp_path)
    project_id = _project_with_code(storage)
    client = TestClient(app)

    response = client.get(f"/draft/{project_id}")

    assert response.status_code == 200
    assert response.headers["x-preview-source"] == "summary"
    assert response.headers["cache-control"].startswith("no-store")
    assert "app/(app)/market/page.tsx" in response.text

    placeholder = client.get("/draft/unknown")
    assert placeholder.status_code == 200
    assert placeholder.headers["x-preview-source"] == "placeholder"


def test_cleanup_requires_bearer_token(tmp_path) -> None:
    app, _, _ = _app(tmp_path, cleanup_token="s3cret")
    client = TestClient(app)

    assert client.post("/cleanup").status_code == 401
    assert client.post("/cleanup", headers={"Authorization": "Bearer wrong"}).status_code == 401

    response = client.post("/cleanup", headers={"Authorization": "Bearer s3cret"})
    assert response.status_code == 200
    assert response.json() == {"success": True, "scanned": 0, "removed": [], "kept": [], "failed": [], "freed_bytes": 0}


def test_cleanup_token_falls_back_to_cron_secret(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("CRON_SECRET", "from-env")
    app, _, _ = _app(tmp_path)
    client = TestClient(app)

    assert client.post("/cleanup").status_code == 401
    assert client.post("/cleanup", headers={"Authorization": "Bearer from-env"}).status_code == 200

