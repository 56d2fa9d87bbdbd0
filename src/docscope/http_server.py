"""
HTTP layer for docscope.

Provides a lightweight FastAPI server exposing scope registration,
scans, search and redacted file text.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.responses import HTMLResponse, PlainTextResponse
from pydantic import BaseModel

from docscope.core.models import ApiKey, SearchCriteria
from docscope.core.permissions import PermissionParseError
from docscope.infrastructure.metadata_store import ScopeConflictError
from docscope.services import (
    AccessDeniedError,
    ExportError,
    FileNotAccessibleError,
    ProfileNotFoundError,
    ScopeValidationError,
    SearchSettingsError,
    ServicesContainer,
    create_services,
)

logger = logging.getLogger(__name__)

_TEXT_FORMATS = ("text", "html")


class ScopeRequest(BaseModel):
    path: str | None = None
    name: str | None = None


class SearchSettingsRequest(BaseModel):
    allowed_extensions: Any = None


@dataclass
class Caller:
    """Identity resolved from request headers."""

    owner_id: int
    api_key: Optional[ApiKey] = None


def create_app(
    services: Optional[ServicesContainer] = None,
    config_path: str | Path | None = None,
) -> FastAPI:
    """
    FastAPI application factory.

    Args:
        services: Prebuilt services container. If None, one is created
                 from config_path (or defaults and environment).
        config_path: Optional path to a configuration file.
    """
    if services is None:
        services = create_services(Path(config_path) if config_path else None)
    cfg = services.config
    metadata_store = services.metadata_store
    scan_service = services.scan_service
    search_service = services.search_service
    redaction_service = services.redaction_service
    export_service = services.export_service

    app = FastAPI(
        title="docscope",
        version="0.1.0",
        description="HTTP interface for local document search with privacy redaction.",
    )

    async def resolve_caller(
        x_owner_id: int | None = Header(None),
        x_api_key: str | None = Header(None),
    ) -> Caller:
        if x_api_key:
            try:
                api_key = metadata_store.get_api_key_by_key(x_api_key)
            except PermissionParseError as exc:
                logger.error(f"Stored API key permissions are invalid: {exc}")
                raise HTTPException(status_code=500, detail="Internal Server Error")
            if api_key is None:
                raise HTTPException(status_code=401, detail="Invalid API key")
            return Caller(owner_id=api_key.owner_id, api_key=api_key)
        owner_id = x_owner_id if x_owner_id is not None else cfg.server.default_owner_id
        return Caller(owner_id=owner_id)

    async def require_owner(caller: Caller = Depends(resolve_caller)) -> Caller:
        """Scope and settings management is not open to API keys."""
        if caller.api_key is not None:
            raise HTTPException(
                status_code=403, detail="API keys cannot manage scopes or settings"
            )
        return caller

    @app.on_event("startup")
    async def startup_event():
        """Rescan every registered scope."""
        if cfg.crawler.scan_on_startup:
            try:
                scan_service.scan_all_scopes()
            except Exception as e:
                logger.error(f"Failed to start startup scans: {e}", exc_info=True)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    # ─────────────────────────────────────────────────────────────────
    # Scopes
    # ─────────────────────────────────────────────────────────────────

    @app.post("/scopes")
    async def add_scope(req: ScopeRequest, caller: Caller = Depends(require_owner)):
        try:
            scope = scan_service.add_scope(caller.owner_id, req.path or "", req.name)
            return scope.to_dict()
        except ScopeValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except ScopeConflictError:
            raise HTTPException(status_code=409, detail="Scope already registered")
        except HTTPException:
            raise
        except Exception as exc:
            logger.error(f"Error in /scopes: {exc}", exc_info=True)
            raise HTTPException(status_code=500, detail="Internal Server Error")

    @app.get("/scopes")
    async def list_scopes(caller: Caller = Depends(require_owner)):
        try:
            scopes = metadata_store.list_scopes(caller.owner_id)
            return {"scopes": [scope.to_dict() for scope in scopes]}
        except Exception as exc:
            logger.error(f"Error in /scopes: {exc}", exc_info=True)
            raise HTTPException(status_code=500, detail="Internal Server Error")

    def _owned_scope(scope_id: int, owner_id: int):
        scope = metadata_store.get_scope_by_id(scope_id)
        if scope is None or scope.owner_id != owner_id:
            raise HTTPException(status_code=404, detail="Scope not found")
        return scope

    @app.delete("/scopes/{scope_id}")
    async def delete_scope(scope_id: int, caller: Caller = Depends(require_owner)):
        try:
            _owned_scope(scope_id, caller.owner_id)
            metadata_store.delete_scope(scope_id, caller.owner_id)
            scan_service.forget_scope(scope_id)
            return {"success": True}
        except HTTPException:
            raise
        except Exception as exc:
            logger.error(f"Error in DELETE /scopes/{scope_id}: {exc}", exc_info=True)
            raise HTTPException(status_code=500, detail="Internal Server Error")

    @app.post("/scopes/{scope_id}/refresh")
    async def refresh_scope(scope_id: int, caller: Caller = Depends(require_owner)):
        try:
            _owned_scope(scope_id, caller.owner_id)
            scan_service.trigger_scan(scope_id)
            return {"success": True}
        except HTTPException:
            raise
        except Exception as exc:
            logger.error(f"Error in /scopes/{scope_id}/refresh: {exc}", exc_info=True)
            raise HTTPException(status_code=500, detail="Internal Server Error")

    @app.get("/scopes/{scope_id}/scan")
    async def scan_status(scope_id: int, caller: Caller = Depends(require_owner)):
        try:
            _owned_scope(scope_id, caller.owner_id)
            result = scan_service.get_last_result(scope_id)
            payload = result.to_dict() if result else {"scope_id": scope_id, "status": "never"}
            payload["scanning"] = scan_service.is_scanning(scope_id)
            return payload
        except HTTPException:
            raise
        except Exception as exc:
            logger.error(f"Error in /scopes/{scope_id}/scan: {exc}", exc_info=True)
            raise HTTPException(status_code=500, detail="Internal Server Error")

    # ─────────────────────────────────────────────────────────────────
    # Files and Search
    # ─────────────────────────────────────────────────────────────────

    @app.get("/files")
    async def list_files(caller: Caller = Depends(resolve_caller)):
        try:
            files = export_service.list_files(caller.owner_id, api_key=caller.api_key)
            return {"files": [record.to_dict() for record in files]}
        except AccessDeniedError as exc:
            raise HTTPException(status_code=403, detail=str(exc))
        except Exception as exc:
            logger.error(f"Error in /files: {exc}", exc_info=True)
            raise HTTPException(status_code=500, detail="Internal Server Error")

    @app.get("/files/text")
    async def export_files_text(
        tag: str | None = None,
        q: str | None = None,
        limit: int | None = None,
        output_format: str = Query("text", alias="format"),
        caller: Caller = Depends(resolve_caller),
    ):
        try:
            if output_format not in _TEXT_FORMATS:
                raise HTTPException(status_code=400, detail="format must be 'text' or 'html'")
            as_html = output_format == "html"
            text = await export_service.export_text(
                caller.owner_id,
                tag=tag,
                query=q,
                limit=limit,
                as_html=as_html,
                api_key=caller.api_key,
            )
            return HTMLResponse(text) if as_html else PlainTextResponse(text)
        except ExportError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except AccessDeniedError as exc:
            raise HTTPException(status_code=403, detail=str(exc))
        except ProfileNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        except HTTPException:
            raise
        except Exception as exc:
            logger.error(f"Error in /files/text: {exc}", exc_info=True)
            raise HTTPException(status_code=500, detail="Internal Server Error")

    @app.get("/files/json")
    async def export_files_json(
        tag: str | None = None,
        q: str | None = None,
        limit: int | None = None,
        output_format: str = Query("text", alias="format"),
        caller: Caller = Depends(resolve_caller),
    ):
        try:
            if output_format not in _TEXT_FORMATS:
                raise HTTPException(status_code=400, detail="format must be 'text' or 'html'")
            exported = await export_service.export_json(
                caller.owner_id,
                tag=tag,
                query=q,
                limit=limit,
                as_html=output_format == "html",
                api_key=caller.api_key,
            )
            return {"files": [entry.to_dict() for entry in exported]}
        except ExportError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except AccessDeniedError as exc:
            raise HTTPException(status_code=403, detail=str(exc))
        except ProfileNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        except HTTPException:
            raise
        except Exception as exc:
            logger.error(f"Error in /files/json: {exc}", exc_info=True)
            raise HTTPException(status_code=500, detail="Internal Server Error")

    @app.get("/files/{file_id}/text")
    async def file_text(
        file_id: int,
        profile_ids: list[int] | None = Query(None, alias="profileId"),
        output_format: str = Query("text", alias="format"),
        caller: Caller = Depends(resolve_caller),
    ):
        try:
            if output_format not in _TEXT_FORMATS:
                raise HTTPException(status_code=400, detail="format must be 'text' or 'html'")
            text = await redaction_service.get_file_text(
                caller.owner_id,
                file_id,
                profile_ids=profile_ids,
                as_html=output_format == "html",
                api_key=caller.api_key,
            )
            return {"file_id": file_id, "format": output_format, "text": text}
        except FileNotAccessibleError:
            raise HTTPException(status_code=404, detail="File not found")
        except AccessDeniedError as exc:
            raise HTTPException(status_code=403, detail=str(exc))
        except ProfileNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        except HTTPException:
            raise
        except Exception as exc:
            logger.error(f"Error in /files/{file_id}/text: {exc}", exc_info=True)
            raise HTTPException(status_code=500, detail="Internal Server Error")

    @app.get("/search")
    async def search(
        filename: str = "",
        content: str = "",
        directory: str = "",
        limit: int | None = None,
        caller: Caller = Depends(resolve_caller),
    ):
        try:
            if limit is not None and limit <= 0:
                raise HTTPException(status_code=400, detail="limit must be greater than 0")
            criteria = SearchCriteria(filename=filename, content=content, directory=directory)
            hits = search_service.search(
                caller.owner_id, criteria, limit=limit, api_key=caller.api_key
            )
            return {"results": [hit.to_dict() for hit in hits]}
        except HTTPException:
            raise
        except Exception as exc:
            logger.error(f"Error in /search: {exc}", exc_info=True)
            raise HTTPException(status_code=500, detail="Internal Server Error")

    # ─────────────────────────────────────────────────────────────────
    # Settings
    # ─────────────────────────────────────────────────────────────────

    @app.get("/settings/search")
    async def get_search_settings(caller: Caller = Depends(require_owner)):
        try:
            settings = search_service.get_settings(caller.owner_id)
            return {"allowed_extensions": settings.allowed_extensions}
        except Exception as exc:
            logger.error(f"Error in /settings/search: {exc}", exc_info=True)
            raise HTTPException(status_code=500, detail="Internal Server Error")

    @app.put("/settings/search")
    async def put_search_settings(
        req: SearchSettingsRequest, caller: Caller = Depends(require_owner)
    ):
        try:
            settings = search_service.update_settings(caller.owner_id, req.allowed_extensions)
            return {"allowed_extensions": settings.allowed_extensions}
        except SearchSettingsError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except Exception as exc:
            logger.error(f"Error in /settings/search: {exc}", exc_info=True)
            raise HTTPException(status_code=500, detail="Internal Server Error")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Wait for running scans, then release resources."""
        try:
            await scan_service.wait_idle()
        except Exception as e:
            logger.error(f"Error waiting for scans during shutdown: {e}")
        services.close()
        logger.info("docscope services closed")

    return app
