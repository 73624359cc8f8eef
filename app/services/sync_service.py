"""
External workspace connections and background document sync

A sync is claimed with a single conditional UPDATE so two concurrent
requests cannot both move a connection into ``syncing``. The request that
wins the claim hands the job to ``SyncTaskRunner`` and returns at once;
the job opens its own database session and records progress and the final
status on the connection row.
"""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select, update, and_, or_, func
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set
from datetime import timedelta
import asyncio
import logging

import httpx

from app.config import settings
from app.models import ExternalConnection, KnowledgeDocument, SyncStatus, utcnow
from app.schemas import ConnectionCreate
from app.services.audit_service import AuditService
from app.services.org_rbac_service import OrganizationRBACService
from fastapi import HTTPException, status

logger = logging.getLogger(__name__)

MAX_DOCUMENT_CHARS = 200000

BLOCK_PREFIXES = {
    "heading_1": "# ",
    "heading_2": "## ",
    "heading_3": "### ",
    "bulleted_list_item": "• ",
    "numbered_list_item": "- ",
    "quote": "> ",
}


class NotionClient:
    """Minimal async client for the Notion search and block APIs"""

    def __init__(self, access_token: str, http_client: Optional[httpx.AsyncClient] = None):
        self.access_token = access_token
        self._client = http_client or httpx.AsyncClient(
            base_url=settings.notion_api_url,
            timeout=settings.notion_timeout_seconds
        )
        self._owns_client = http_client is None

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Notion-Version": settings.notion_api_version,
        }

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def search_pages(self) -> List[Dict[str, Any]]:
        pages = []
        cursor = None
        while True:
            body: Dict[str, Any] = {
                "filter": {"property": "object", "value": "page"},
                "page_size": settings.notion_page_size,
            }
            if cursor:
                body["start_cursor"] = cursor
            response = await self._client.post("/search", json=body, headers=self.headers)
            response.raise_for_status()
            data = response.json()

            for result in data.get("results", []):
                pages.append({
                    "id": result["id"],
                    "title": extract_title(result),
                    "url": result.get("url"),
                    "last_edited_time": result.get("last_edited_time"),
                })
            if not data.get("has_more"):
                return pages
            cursor = data.get("next_cursor")

    async def get_blocks(self, block_id: str) -> List[Dict[str, Any]]:
        blocks = []
        cursor = None
        while True:
            params: Dict[str, Any] = {"page_size": settings.notion_page_size}
            if cursor:
                params["start_cursor"] = cursor
            response = await self._client.get(f"/blocks/{block_id}/children", params=params, headers=self.headers)
            response.raise_for_status()
            data = response.json()
            blocks.extend(data.get("results", []))
            if not data.get("has_more"):
                return blocks
            cursor = data.get("next_cursor")

    async def page_text(self, page_id: str) -> str:
        return await self._blocks_to_text(await self.get_blocks(page_id))

    async def _blocks_to_text(self, blocks: List[Dict[str, Any]]) -> str:
        parts = []
        for block in blocks:
            text = block_to_text(block)
            if text:
                parts.append(text)
            if block.get("has_children"):
                try:
                    child_text = await self._blocks_to_text(await self.get_blocks(block["id"]))
                except httpx.HTTPError as e:
                    logger.error(f"Failed to fetch child blocks of {block.get('id')}: {e}")
                    continue
                if child_text:
                    parts.append(child_text)
        return "\n\n".join(parts)


def rich_text_to_plain(rich_text: Any) -> str:
    if not isinstance(rich_text, list):
        return ""
    return "".join(item.get("plain_text", "") for item in rich_text if isinstance(item, dict))


def block_to_text(block: Dict[str, Any]) -> str:
    block_type = block.get("type")
    body = block.get(block_type) or {}
    if block_type == "divider":
        return "---"
    text = rich_text_to_plain(body.get("rich_text"))
    if block_type == "to_do":
        return ("[x] " if body.get("checked") else "[ ] ") + text
    if block_type == "code":
        return f"```\n{text}\n```"
    return BLOCK_PREFIXES.get(block_type, "") + text


def extract_title(page: Dict[str, Any]) -> str:
    for prop in (page.get("properties") or {}).values():
        if isinstance(prop, dict) and prop.get("type") == "title":
            return rich_text_to_plain(prop.get("title")) or "Untitled"
    child_page = page.get("child_page") or {}
    return child_page.get("title") or "Untitled"


class SyncTaskRunner:
    """Owns fire-and-forget sync jobs so they can be cancelled on shutdown"""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def submit(self, coro: Awaitable[Any], name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def active(self) -> int:
        return len(self._tasks)

    async def wait(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.wait()
        logger.info("Sync task runner stopped")


NotionClientFactory = Callable[[str], NotionClient]


class SyncService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)
        self.rbac = OrganizationRBACService(db)

    @staticmethod
    def _claimable():
        """Not syncing, or syncing with no progress recorded within the staleness window"""
        cutoff = utcnow() - timedelta(minutes=settings.sync_stale_after_minutes)
        return or_(
            ExternalConnection.sync_status != SyncStatus.SYNCING,
            ExternalConnection.updated_at < cutoff
        )

    async def _is_held(self, connection_id: str) -> bool:
        result = await self.db.execute(
            select(ExternalConnection.id).where(
                and_(ExternalConnection.id == connection_id, self._claimable())
            )
        )
        return result.scalar_one_or_none() is None

    async def list_connections(self, acting_user_id: str, organization_id: str) -> List[ExternalConnection]:
        await self.rbac.require_permission(acting_user_id, organization_id, "org:integrations:read")
        result = await self.db.execute(
            select(ExternalConnection)
            .where(ExternalConnection.organization_id == organization_id)
            .order_by(ExternalConnection.provider)
        )
        return list(result.scalars().all())

    async def get_connection(self, organization_id: str, connection_id: str) -> ExternalConnection:
        result = await self.db.execute(
            select(ExternalConnection).where(
                and_(
                    ExternalConnection.id == connection_id,
                    ExternalConnection.organization_id == organization_id
                )
            )
        )
        connection = result.scalar_one_or_none()
        if not connection:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Connection not found")
        return connection

    async def connect(self, acting_user_id: str, organization_id: str, data: ConnectionCreate) -> ExternalConnection:
        """Create or replace the organization's connection to a provider"""
        await self.rbac.require_permission(acting_user_id, organization_id, "org:integrations:write")

        result = await self.db.execute(
            select(ExternalConnection).where(
                and_(
                    ExternalConnection.organization_id == organization_id,
                    ExternalConnection.provider == data.provider
                )
            )
        )
        connection = result.scalar_one_or_none()
        if connection and connection.sync_status == SyncStatus.SYNCING and await self._is_held(connection.id):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Sync is already in progress")

        if connection:
            if connection.sync_status == SyncStatus.SYNCING:
                logger.warning(f"Connection {connection.id} was stuck in syncing; resetting on reconnect")
                connection.sync_status = SyncStatus.IDLE
            connection.access_token = data.access_token
            connection.workspace_name = data.workspace_name
            connection.connected_by = acting_user_id
            connection.last_error = None
        else:
            connection = ExternalConnection(
                organization_id=organization_id,
                provider=data.provider,
                workspace_name=data.workspace_name,
                access_token=data.access_token,
                connected_by=acting_user_id,
                sync_status=SyncStatus.IDLE,
                items_synced=0,
                items_total=0
            )
            self.db.add(connection)
            await self.db.flush()

        self.audit.record(
            action="integration_connected",
            resource="external_connection",
            resource_id=connection.id,
            user_id=acting_user_id,
            organization_id=organization_id,
            details={"provider": data.provider}
        )
        await self.db.commit()
        await self.db.refresh(connection)
        logger.info(f"Organization {organization_id} connected {data.provider}")
        return connection

    async def claim(self, connection_id: str) -> None:
        """Atomically move a connection into ``syncing``; 409 if a live sync already holds it"""
        result = await self.db.execute(
            update(ExternalConnection)
            .where(
                and_(
                    ExternalConnection.id == connection_id,
                    self._claimable()
                )
            )
            .values(
                sync_status=SyncStatus.SYNCING,
                items_synced=0,
                items_total=0,
                last_error=None,
                updated_at=utcnow()
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        if result.rowcount != 1:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Sync is already in progress")

    async def start_sync(
        self,
        acting_user_id: str,
        organization_id: str,
        connection_id: str,
        runner: SyncTaskRunner,
        session_factory: async_sessionmaker,
        client_factory: Optional[NotionClientFactory] = None
    ) -> ExternalConnection:
        await self.rbac.require_permission(acting_user_id, organization_id, "org:integrations:write")
        connection = await self.get_connection(organization_id, connection_id)
        if connection.provider != "notion":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Sync is not supported for provider: {connection.provider}"
            )

        await self.claim(connection.id)
        self.audit.record(
            action="integration_sync_started",
            resource="external_connection",
            resource_id=connection.id,
            user_id=acting_user_id,
            organization_id=organization_id
        )
        await self.db.commit()

        runner.submit(
            run_notion_sync(session_factory, connection.id, client_factory or NotionClient),
            name=f"notion-sync-{connection.id}"
        )
        logger.info(f"Notion sync started for connection {connection.id}")
        await self.db.refresh(connection)
        return connection

    async def get_sync_status(self, acting_user_id: str, organization_id: str, connection_id: str) -> Dict[str, Any]:
        await self.rbac.require_permission(acting_user_id, organization_id, "org:integrations:read")
        connection = await self.get_connection(organization_id, connection_id)
        await self.db.refresh(connection)
        documents = (await self.db.execute(
            select(func.count(KnowledgeDocument.id)).where(KnowledgeDocument.connection_id == connection.id)
        )).scalar() or 0
        return {
            "connection_id": connection.id,
            "provider": connection.provider,
            "workspace_name": connection.workspace_name,
            "sync_status": connection.sync_status,
            "progress": {"current": connection.items_synced, "total": connection.items_total},
            "documents_count": documents,
            "last_sync_at": connection.last_sync_at,
            "last_error": connection.last_error,
        }


async def _set_connection(session: AsyncSession, connection_id: str, **values: Any) -> None:
    await session.execute(
        update(ExternalConnection)
        .where(ExternalConnection.id == connection_id)
        .values(updated_at=utcnow(), **values)
        .execution_options(synchronize_session=False)
    )
    await session.commit()


async def _upsert_document(session: AsyncSession, connection: ExternalConnection, page: Dict[str, Any], content: str) -> None:
    result = await session.execute(
        select(KnowledgeDocument).where(
            and_(
                KnowledgeDocument.connection_id == connection.id,
                KnowledgeDocument.external_id == page["id"]
            )
        )
    )
    document = result.scalar_one_or_none()
    if not document:
        document = KnowledgeDocument(
            organization_id=connection.organization_id,
            connection_id=connection.id,
            external_id=page["id"]
        )
        session.add(document)
    document.title = page["title"]
    document.url = page.get("url")
    document.content = content[:MAX_DOCUMENT_CHARS]
    document.last_edited_at = page.get("last_edited_time")


async def run_notion_sync(
    session_factory: async_sessionmaker,
    connection_id: str,
    client_factory: NotionClientFactory = NotionClient
) -> Dict[str, int]:
    """Pull every page the integration can see into the knowledge base"""
    stats = {"success": 0, "failed": 0, "total": 0}
    async with session_factory() as session:
        connection = await session.get(ExternalConnection, connection_id)
        if connection is None:
            logger.error(f"Notion sync aborted: connection {connection_id} no longer exists")
            return stats

        client = client_factory(connection.access_token)
        try:
            pages = await client.search_pages()
            stats["total"] = len(pages)
            await _set_connection(session, connection_id, items_total=len(pages))
            logger.info(f"Notion sync for {connection_id} found {len(pages)} pages")

            for index, page in enumerate(pages, start=1):
                try:
                    content = await client.page_text(page["id"])
                    await _upsert_document(session, connection, page, content)
                    stats["success"] += 1
                except httpx.HTTPError as e:
                    logger.error(f"Failed to sync Notion page {page['title']}: {e}")
                    stats["failed"] += 1
                await _set_connection(session, connection_id, items_synced=index)

            await _set_connection(
                session,
                connection_id,
                sync_status=SyncStatus.COMPLETED,
                last_sync_at=utcnow(),
                last_error=None
            )
            logger.info(f"Notion sync for {connection_id} completed: {stats}")
            return stats
        except asyncio.CancelledError:
            await session.rollback()
            await _set_connection(session, connection_id, sync_status=SyncStatus.FAILED, last_error="Sync cancelled")
            raise
        except Exception as e:
            logger.error(f"Notion sync for {connection_id} failed: {e}")
            await session.rollback()
            await _set_connection(session, connection_id, sync_status=SyncStatus.FAILED, last_error=str(e))
            return stats
        finally:
            await client.aclose()
