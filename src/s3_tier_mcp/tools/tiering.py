"""Tool handlers for browsing buckets, selecting objects and running transitions."""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime

from s3_tier_mcp.app import get_app_context
from s3_tier_mcp.domain.models import BucketInfo, ObjectRecord, OutcomeRecord
from s3_tier_mcp.errors import TieringError, ValidationError
from s3_tier_mcp.masks import Mask
from s3_tier_mcp.mcp_runtime import ToolResult, ToolSpec
from s3_tier_mcp.policy.models import Policy
from s3_tier_mcp.session import TransitionRun
from s3_tier_mcp.tools._schemas import (
    EMPTY_SCHEMA,
    HIGHLIGHT_SCHEMA,
    INSPECT_SCHEMA,
    LOAD_OBJECTS_SCHEMA,
    POLICY_ID_SCHEMA,
    POLICY_REPLAY_SCHEMA,
    POLICY_SAVE_SCHEMA,
    REQUEST_RESTORE_SCHEMA,
    SET_MASK_SCHEMA,
    START_TRANSITION_SCHEMA,
    STATUS_LOG_SCHEMA,
    make_tool_specs,
)
from s3_tier_mcp.tools.base import error_from_exception, result_from_payload, validate_or_raise
from s3_tier_mcp.utils.serialization import format_size

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, object]], Awaitable[ToolResult]]


def _tool(schema: dict[str, object]) -> Callable[[Handler], Handler]:
    """Validate the payload and turn engine errors into error payloads."""

    def decorator(func: Handler) -> Handler:
        @functools.wraps(func)
        async def wrapper(payload: dict[str, object]) -> ToolResult:
            try:
                validate_or_raise(schema, payload)
                return await func(payload)
            except TieringError as exc:
                logger.info("%s rejected: %s", func.__name__, exc)
                return error_from_exception(exc)

        return wrapper

    return decorator


@_tool(EMPTY_SCHEMA)
async def list_buckets(payload: dict[str, object]) -> ToolResult:
    session = get_app_context().session
    buckets = await session.refresh_buckets()
    return result_from_payload(
        {"buckets": [_bucket_view(bucket) for bucket in buckets], "count": len(buckets)}
    )


@_tool(LOAD_OBJECTS_SCHEMA)
async def load_objects(payload: dict[str, object]) -> ToolResult:
    session = get_app_context().session
    bucket = str(payload["bucket"])
    records = await session.load_objects(bucket)
    response: dict[str, object] = {
        "bucket": bucket,
        "count": len(records),
        "objects": [_object_view(record) for record in records],
    }
    if session.mask is not None:
        response["mask"] = session.mask.to_dict()
        response["matched"] = len(session.filtered())
    return result_from_payload(response)


@_tool(SET_MASK_SCHEMA)
async def set_mask(payload: dict[str, object]) -> ToolResult:
    session = get_app_context().session
    if payload.get("clear"):
        session.set_mask(None)
        return result_from_payload({"mask": None, "matched": len(session.listing())})
    if "mode" not in payload or "pattern" not in payload:
        raise ValidationError("Provide 'mode' and 'pattern', or set 'clear' to remove the mask")
    mask = Mask.create(
        mode=str(payload["mode"]),
        pattern=str(payload["pattern"]),
        case_sensitive=bool(payload.get("caseSensitive", False)),
        name=payload.get("name") if isinstance(payload.get("name"), str) else None,
    )
    matched = session.set_mask(mask)
    response: dict[str, object] = {
        "mask": mask.to_dict(),
        "description": mask.describe(),
        "matched": matched,
    }
    if mask.is_wildcard:
        response["warning"] = (
            "Empty pattern selects every object; actions require confirmWildcard=true."
        )
    if session.bucket is not None:
        response["keys"] = [record.key for record in session.filtered()]
    return result_from_payload(response)


@_tool(HIGHLIGHT_SCHEMA)
async def highlight_object(payload: dict[str, object]) -> ToolResult:
    session = get_app_context().session
    key = payload.get("key")
    record = session.highlight(str(key) if key is not None else None)
    return result_from_payload({"highlighted": _object_view(record) if record else None})


@_tool(INSPECT_SCHEMA)
async def inspect_object(payload: dict[str, object]) -> ToolResult:
    session = get_app_context().session
    key = payload.get("key")
    record = await session.inspect(str(key) if key is not None else None)
    return result_from_payload({"object": _object_view(record)})


@_tool(START_TRANSITION_SCHEMA)
async def start_transition(payload: dict[str, object]) -> ToolResult:
    session = get_app_context().session
    run = await session.start_transition(
        str(payload["destinationClass"]),
        bool(payload.get("restoreFirst", False)),
        allow_wildcard=bool(payload.get("confirmWildcard", False)),
    )
    return result_from_payload(_run_view(run))


@_tool(REQUEST_RESTORE_SCHEMA)
async def request_restore(payload: dict[str, object]) -> ToolResult:
    session = get_app_context().session
    days = payload.get("days")
    outcomes = await session.request_restore(
        int(days) if isinstance(days, int) else None,
        allow_wildcard=bool(payload.get("confirmWildcard", False)),
    )
    return result_from_payload(_outcomes_view(outcomes))


@_tool(EMPTY_SCHEMA)
async def retry_failed(payload: dict[str, object]) -> ToolResult:
    session = get_app_context().session
    run = await session.retry_failed()
    return result_from_payload(_run_view(run))


@_tool(STATUS_LOG_SCHEMA)
async def view_status_log(payload: dict[str, object]) -> ToolResult:
    ledger = get_app_context().ledger
    history = list(ledger.history())
    limit = payload.get("limit")
    if isinstance(limit, int):
        history = history[-limit:]
    return result_from_payload(
        {
            "messages": ledger.messages(),
            "outcomes": [outcome.to_dict() for outcome in history],
        }
    )


@_tool(POLICY_SAVE_SCHEMA)
async def policy_save(payload: dict[str, object]) -> ToolResult:
    session = get_app_context().session
    notes = payload.get("notes")
    policy = session.save_policy(
        str(payload["destinationClass"]),
        bool(payload.get("restoreFirst", False)),
        notes=notes if isinstance(notes, str) else None,
    )
    return result_from_payload({"policy": _policy_view(policy)})


@_tool(EMPTY_SCHEMA)
async def policy_list(payload: dict[str, object]) -> ToolResult:
    store = get_app_context().policy_store
    policies = store.list()
    return result_from_payload(
        {
            "policies": [_policy_view(policy) for policy in policies],
            "corrupt": [
                {"index": entry.index, "reason": entry.reason}
                for entry in store.corrupt_entries
            ],
        }
    )


@_tool(POLICY_REPLAY_SCHEMA)
async def policy_replay(payload: dict[str, object]) -> ToolResult:
    session = get_app_context().session
    run = await session.replay_policy(
        str(payload["policyId"]),
        allow_wildcard=bool(payload.get("confirmWildcard", False)),
    )
    return result_from_payload(_run_view(run))


@_tool(POLICY_ID_SCHEMA)
async def policy_delete(payload: dict[str, object]) -> ToolResult:
    context = get_app_context()
    policy_id = str(payload["policyId"])
    deleted = context.policy_store.delete(policy_id)
    if deleted:
        context.ledger.note(f"Deleted policy {policy_id}")
    return result_from_payload({"policyId": policy_id, "deleted": deleted})


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _bucket_view(bucket: BucketInfo) -> dict[str, object]:
    return {
        "name": bucket.name,
        "region": bucket.region,
        "creationDate": _iso(bucket.creation_date),
    }


def _object_view(record: ObjectRecord) -> dict[str, object]:
    return {
        "bucket": record.bucket,
        "key": record.key,
        "size": record.size_bytes,
        "sizeHuman": format_size(record.size_bytes),
        "storageClass": record.storage_class.value,
        "archived": record.storage_class.is_archive,
        "restoreStatus": record.restore_status.describe(),
        "lastModified": _iso(record.last_modified),
        "lastRefreshed": _iso(record.last_refreshed),
    }


def _policy_view(policy: Policy) -> dict[str, object]:
    view = policy.to_record()
    view["summary"] = policy.summary()
    return view


def _outcomes_view(outcomes: Iterable[OutcomeRecord]) -> dict[str, object]:
    items = [outcome.to_dict() for outcome in outcomes]
    return {
        "outcomes": items,
        "succeeded": sum(1 for item in items if item["result"] == "success"),
        "failed": sum(1 for item in items if item["result"] == "failed"),
        "skipped": sum(1 for item in items if item["result"] == "skipped"),
    }


def _run_view(run: TransitionRun) -> dict[str, object]:
    view = _outcomes_view(run.outcomes)
    view.update(
        {
            "bucket": run.bucket,
            "destinationClass": run.destination_class.value,
            "restoreFirst": run.restore_first,
            "targets": len(run.targets),
        }
    )
    return view


TOOL_SPECS: tuple[ToolSpec, ...] = make_tool_specs(
    {
        "s3_list_buckets": list_buckets,
        "s3_load_objects": load_objects,
        "s3_set_mask": set_mask,
        "s3_highlight_object": highlight_object,
        "s3_inspect_object": inspect_object,
        "s3_start_transition": start_transition,
        "s3_request_restore": request_restore,
        "s3_retry_failed": retry_failed,
        "s3_view_status_log": view_status_log,
        "policy_save": policy_save,
        "policy_list": policy_list,
        "policy_replay": policy_replay,
        "policy_delete": policy_delete,
    }
)
