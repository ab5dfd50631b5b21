"""Application context assembly."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from s3_tier_mcp.config import Settings, load_settings
from s3_tier_mcp.execution.orchestrator import TransitionOrchestrator
from s3_tier_mcp.execution.s3_client import S3StorageClient, StorageClient
from s3_tier_mcp.ledger.status import StatusLedger
from s3_tier_mcp.policy.store import PolicyStore
from s3_tier_mcp.session import BrowseSession


@dataclass
class AppContext:
    """Application-wide dependency container.

    Initialized once at startup and cached for the lifetime of the process.
    The browse session is the only holder of bucket/listing/mask state.
    """

    settings: Settings
    client: StorageClient
    ledger: StatusLedger
    policy_store: PolicyStore
    orchestrator: TransitionOrchestrator
    session: BrowseSession


def build_app_context(
    settings: Settings,
    client: StorageClient | None = None,
) -> AppContext:
    client = client if client is not None else S3StorageClient(settings=settings)
    ledger = StatusLedger(
        flush_path=settings.storage.status_log_path,
        message_limit=settings.storage.status_log_limit,
    )
    policy_store = PolicyStore(settings.storage.policy_path)
    orchestrator = TransitionOrchestrator(
        ledger,
        max_concurrency=settings.execution.max_concurrency,
        restore_days=settings.execution.restore_days,
    )
    session = BrowseSession(client, ledger, orchestrator, policy_store)
    return AppContext(
        settings=settings,
        client=client,
        ledger=ledger,
        policy_store=policy_store,
        orchestrator=orchestrator,
        session=session,
    )


@lru_cache(maxsize=1)
def get_app_context() -> AppContext:
    """Get or create the application context."""
    return build_app_context(load_settings())
