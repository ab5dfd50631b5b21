"""Tool handlers driven through a real app context over an in-memory store."""

from __future__ import annotations

import json

import pytest
from conftest import FakeStorageClient

from s3_tier_mcp.app import build_app_context
from s3_tier_mcp.config import Settings, StorageSettings
from s3_tier_mcp.domain.models import StorageClass
from s3_tier_mcp.tools import get_tool_registry


@pytest.fixture
def context(fake_client: FakeStorageClient, tmp_path, monkeypatch):
    settings = Settings(
        storage=StorageSettings(
            policy_path=str(tmp_path / "policies.json"),
            status_log_path=str(tmp_path / "status.jsonl"),
        )
    )
    app_context = build_app_context(settings, client=fake_client)
    monkeypatch.setattr("s3_tier_mcp.tools.tiering.get_app_context", lambda: app_context)
    return app_context


async def call(name: str, /, **payload: object) -> dict[str, object]:
    result = await get_tool_registry()[name].handler(dict(payload))
    assert json.loads(result.content[0]["text"]) == result.structured_content
    return result.structured_content


@pytest.mark.asyncio
async def test_browse_and_transition_flow(context, fake_client, tmp_path) -> None:
    buckets = await call("s3_list_buckets")
    assert buckets["buckets"][0]["name"] == "data"

    loaded = await call("s3_load_objects", bucket="data")
    assert [item["key"] for item in loaded["objects"]] == [
        "img/c.png",
        "logs/a.txt",
        "logs/b.txt",
    ]

    mask = await call("s3_set_mask", mode="prefix", pattern="logs/", name="Old logs")
    assert mask["matched"] == 2
    assert mask["keys"] == ["logs/a.txt", "logs/b.txt"]

    run = await call("s3_start_transition", destinationClass="GLACIER")
    assert run["succeeded"] == 2
    assert run["failed"] == 0
    assert fake_client.objects["data"]["img/c.png"] is StorageClass.STANDARD

    status = await call("s3_view_status_log", limit=1)
    assert len(status["outcomes"]) == 1
    assert "Transitioned logs/b.txt to GLACIER" in status["messages"]
    assert len((tmp_path / "status.jsonl").read_text(encoding="utf-8").splitlines()) == 2


@pytest.mark.asyncio
async def test_errors_become_payloads(context) -> None:
    no_bucket = await call("s3_start_transition", destinationClass="GLACIER")
    assert no_bucket["error"]["type"] == "NoBucketSelected"

    await call("s3_load_objects", bucket="data")
    no_target = await call("s3_start_transition", destinationClass="GLACIER")
    assert no_target["error"]["type"] == "NoTargetError"

    bad_schema = await call("s3_start_transition", destinationClass="COLD")
    assert bad_schema["error"]["type"] == "ValidationError"

    bad_regex = await call("s3_set_mask", mode="regex", pattern="(")
    assert bad_regex["error"]["type"] == "ValidationError"

    missing = await call("s3_load_objects", bucket="missing")
    assert missing["error"]["type"] == "BackendError"
    assert missing["error"]["retryable"] is True

    unknown = await call("policy_replay", policyId="nope")
    assert unknown["error"]["type"] == "PolicyNotFound"


@pytest.mark.asyncio
async def test_wildcard_mask_needs_confirm(context) -> None:
    await call("s3_load_objects", bucket="data")
    mask = await call("s3_set_mask", mode="contains", pattern="")
    assert "warning" in mask

    rejected = await call("s3_start_transition", destinationClass="STANDARD_IA")
    assert rejected["error"]["type"] == "ValidationError"

    run = await call("s3_start_transition", destinationClass="STANDARD_IA", confirmWildcard=True)
    assert run["targets"] == 3


@pytest.mark.asyncio
async def test_highlight_inspect_and_restore(context, fake_client) -> None:
    await call("s3_load_objects", bucket="data")
    highlighted = await call("s3_highlight_object", key="logs/a.txt")
    assert highlighted["highlighted"]["key"] == "logs/a.txt"

    fake_client.objects["data"]["logs/a.txt"] = StorageClass.GLACIER
    inspected = await call("s3_inspect_object")
    assert inspected["object"]["storageClass"] == "GLACIER"

    restored = await call("s3_request_restore", days=2)
    assert restored["succeeded"] == 1
    assert ("restore", "data", "logs/a.txt") in fake_client.calls

    cleared = await call("s3_highlight_object")
    assert cleared["highlighted"] is None


@pytest.mark.asyncio
async def test_retry_failed(context, fake_client) -> None:
    await call("s3_load_objects", bucket="data")
    await call("s3_set_mask", mode="suffix", pattern=".txt")
    fake_client.fail[("copy", "logs/a.txt")] = "SlowDown: reduce request rate"
    first = await call("s3_start_transition", destinationClass="GLACIER")
    assert first["failed"] == 1

    fake_client.fail.clear()
    retry = await call("s3_retry_failed")
    assert retry["targets"] == 1
    assert retry["succeeded"] == 1


@pytest.mark.asyncio
async def test_policy_lifecycle(context, fake_client) -> None:
    await call("s3_load_objects", bucket="data")
    no_mask = await call("policy_save", destinationClass="GLACIER")
    assert no_mask["error"]["type"] == "ValidationError"

    await call("s3_set_mask", mode="suffix", pattern=".png", name="images")
    saved = await call("policy_save", destinationClass="GLACIER_IR", notes="weekly")
    policy_id = saved["policy"]["id"]
    assert saved["policy"]["summary"] == "images -> GLACIER_IR (data)"

    listed = await call("policy_list")
    assert [policy["id"] for policy in listed["policies"]] == [policy_id]
    assert listed["corrupt"] == []

    replayed = await call("policy_replay", policyId=policy_id)
    assert replayed["succeeded"] == 1
    assert fake_client.objects["data"]["img/c.png"] is StorageClass.GLACIER_IR

    deleted = await call("policy_delete", policyId=policy_id)
    assert deleted["deleted"] is True
    again = await call("policy_delete", policyId=policy_id)
    assert again["deleted"] is False


@pytest.mark.asyncio
async def test_clear_mask(context) -> None:
    await call("s3_load_objects", bucket="data")
    await call("s3_set_mask", mode="prefix", pattern="logs/")
    cleared = await call("s3_set_mask", clear=True)
    assert cleared == {"mask": None, "matched": 3}

    incomplete = await call("s3_set_mask", mode="prefix")
    assert incomplete["error"]["type"] == "ValidationError"
