import asyncio
import json

from conftest import DEFAULT_FILES, CountingInstaller, FakeLauncher, ScriptedClient, make_orchestrator

BAD_FILES = [
    {
        "path": "app/(app)/profile/page.tsx",
        "content": (
            "export default function ProfilePage() {\n"
            "  const name = session.user.name\n"
            "  return <main>{name}</main>\n"
            "}\n"
        ),
    },
]


async def _snapshot(orchestrator, project_id: str) -> dict:
    storage = orchestrator.storage
    return {
        "project": await storage.get_project(project_id),
        "artifacts": await storage.list_artifacts(project_id),
        "runs": {run.stage: run for run in await storage.list_runs(project_id)},
        "messages": [message.content for message in await storage.list_messages(project_id)],
        "build": await orchestrator.build_status(project_id),
    }


def _run_brief(orchestrator, brief: str, *replies: str) -> dict:
    async def _run():
        project = await orchestrator.create_project(brief)
        for reply in replies:
            await orchestrator.handle_message(project.project_id, reply)
        await orchestrator.tasks.join()
        snapshot = await _snapshot(orchestrator, project.project_id)
        await orchestrator.shutdown()
        return snapshot

    return asyncio.run(_run())


def _drafts(snapshot: dict) -> list[dict]:
    return [json.loads(item.content) for item in snapshot["artifacts"] if item.kind == "draft"]


def test_named_brief_runs_spec_code_and_build(tmp_path) -> None:
    launcher = FakeLauncher()
    client = ScriptedClient()
    orchestrator = make_orchestrator(tmp_path, client=client, launcher=launcher)

    snapshot = _run_brief(orchestrator, "Build a marketplace called Foo")

    project = snapshot["project"]
    project_id = project.project_id
    port = orchestrator.builder.ports.port_for(project_id)
    assert project.title == "Foo"

    kinds = [item.kind for item in snapshot["artifacts"]]
    assert kinds[0] == "spec"
    assert kinds.count("code") == len(DEFAULT_FILES)
    assert kinds.index("code") < kinds.index("draft")
    assert _drafts(snapshot) == [
        {"previewUrl": f"/draft/{project_id}", "port": port, "buildStatus": "building"},
        {"previewUrl": f"/draft/{project_id}", "port": port, "buildStatus": "ready"},
    ]
    assert {stage: run.status for stage, run in snapshot["runs"].items()} == {
        "spec": "completed",
        "code": "completed",
        "draft": "completed",
    }
    assert snapshot["build"] == {"status": "completed"}
    assert snapshot["messages"] == [
        "Build a marketplace called Foo",
        "I'm building your Foo! I'll keep you posted as I progress.",
        "Drafting the specification...",
        "Specification blueprint created",
        "Generating your application code...",
        "Application created successfully",
        "Ok, building your code and starting the preview.",
        "Building application...",
        f"App draft is ready for review: /draft/{project_id}",
    ]

    workspace = tmp_path / "drafts" / project_id
    assert (workspace / "app" / "(app)" / "market" / "page.tsx").is_file()
    assert (workspace / "node_modules" / "react" / "package.json").is_file()
    package = json.loads((workspace / "package.json").read_text(encoding="utf-8"))
    assert package["scripts"]["dev"] == f"next dev -p {port}"
    assert f"PORT={port}" in (workspace / ".env.local").read_text(encoding="utf-8")
    assert launcher.calls[0]["env"]["PORT"] == str(port)
    assert launcher.calls[0]["cwd"] == workspace
    assert len(client.calls) == 2
    assert client.temperatures == [0.4, 0.2]


def test_validation_errors_trigger_one_corrective_generation(tmp_path) -> None:
    client = ScriptedClient(code_answers=[json.dumps({"files": BAD_FILES}), json.dumps({"files": DEFAULT_FILES})])
    orchestrator = make_orchestrator(tmp_path, client=client)

    snapshot = _run_brief(orchestrator, "Build a marketplace called Foo")

    assert len(client.calls) == 3
    corrective = client.calls[-1]
    assert client.temperatures == [0.4, 0.2, 0.2]
    assert corrective[-2]["role"] == "assistant"
    assert corrective[-1]["content"].startswith("The previous code had validation errors. Please fix them:")
    assert "app/(app)/profile/page.tsx:2" in corrective[-1]["content"]
    assert "Code validation failed. Regenerating with stricter rules..." in snapshot["messages"]
    code_paths = [item.path for item in snapshot["artifacts"] if item.kind == "code"]
    assert code_paths == [item["path"] for item in DEFAULT_FILES]
    assert snapshot["build"] == {"status": "completed"}


def test_exhausted_retry_budget_builds_anyway(tmp_path) -> None:
    client = ScriptedClient(code_answers=[json.dumps({"files": BAD_FILES})])
    orchestrator = make_orchestrator(tmp_path, client=client)

    snapshot = _run_brief(orchestrator, "Build a marketplace called Foo")

    assert len(client.calls) == 3
    code_paths = [item.path for item in snapshot["artifacts"] if item.kind == "code"]
    assert code_paths == ["app/(app)/profile/page.tsx"]
    assert _drafts(snapshot)[-1]["buildStatus"] == "ready"

    page = tmp_path / "drafts" / snapshot["project"].project_id / "app" / "(app)" / "profile" / "page.tsx"
    assert "session?.user?.name" in page.read_text(encoding="utf-8")


def test_unparseable_code_is_kept_as_raw_text(tmp_path) -> None:
    client = ScriptedClient(code_answers=["Sorry, here is some prose instead of JSON."])
    orchestrator = make_orchestrator(tmp_path, client=client)

    snapshot = _run_brief(orchestrator, "Build a marketplace called Foo")

    code = [item for item in snapshot["artifacts"] if item.kind == "code"]
    assert [(item.path, item.content) for item in code] == [("code.txt", "Sorry, here is some prose instead of JSON.")]
    assert snapshot["build"] == {"status": "completed"}


def test_specification_failure_stops_the_pipeline(tmp_path) -> None:
    client = ScriptedClient(fail_spec=True)
    orchestrator = make_orchestrator(tmp_path, client=client)

    snapshot = _run_brief(orchestrator, "Build a marketplace called Foo")
    project_id = snapshot["project"].project_id

    assert snapshot["runs"]["spec"].status == "failed"
    assert snapshot["runs"]["spec"].error == "completion service unavailable"
    assert "code" not in snapshot["runs"]
    assert snapshot["artifacts"] == []
    assert snapshot["messages"][-1] == "I couldn't draft the specification: completion service unavailable"
    assert snapshot["build"] == {"status": "pending"}
    assert not orchestrator.is_busy(project_id)


def test_install_failure_marks_the_draft_failed(tmp_path) -> None:
    orchestrator = make_orchestrator(tmp_path, installer=CountingInstaller(fail=True))

    snapshot = _run_brief(orchestrator, "Build a marketplace called Foo")
    project_id = snapshot["project"].project_id

    build = snapshot["build"]
    assert build["status"] == "failed"
    assert build["error"].startswith("Build failed: Failed to install dependencies: npm ERR! 404")
    assert _drafts(snapshot)[-1]["buildStatus"] == "failed"
    assert snapshot["messages"][-1].startswith("Draft build failed:\n```\nFailed to install dependencies")
    cache_dir = orchestrator.builder.cache.cache_dir
    assert not cache_dir.exists() or list(cache_dir.iterdir()) == []
    assert not orchestrator.is_busy(project_id)


def test_unnamed_brief_builds_after_the_name_reply(tmp_path) -> None:
    orchestrator = make_orchestrator(tmp_path)

    snapshot = _run_brief(orchestrator, "Build a wallet dashboard", "stake pilot")

    assert snapshot["project"].title == "Stake Pilot"
    assert snapshot["messages"][:4] == [
        "Build a wallet dashboard",
        "What name would you like to give to your dapp?",
        "stake pilot",
        "Perfect! I'll name your project Stake Pilot. Building it now...",
    ]
    assert snapshot["build"] == {"status": "completed"}
