"""FastAPI application.

Routes under ``/api/v1`` map one-to-one onto ``DocumentEngine`` operations
and the DocType registry. Every route needs a bearer access token whose
claims carry ``sub``, ``tenant_id`` and ``roles``.

Hooks are registered on the module-level ``hook_registry`` before startup::

    from metadoc.api.app import hook_registry

    @hook_registry.on("Invoice", "beforeSave")
    def default_status(doc, user):
        return {**doc, "status": doc.get("status") or "Draft"}
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from metadoc.auth import (
    AuthMiddleware,
    JWTService,
    PermissionEvaluator,
    UserContext,
    require_authenticated,
    require_super_role,
)
from metadoc.core.errors import MetadocError, NotFoundError, ValidationFailedError
from metadoc.documents import DocumentEngine
from metadoc.hooks import HookRegistry
from metadoc.metadata.loader import DocTypeLoader
from metadoc.metadata.registry import SchemaRegistry
from metadoc.metadata.sync import SchemaSynchronizer
from metadoc.metadata.types import DocTypeDefinition
from metadoc.metadata.validator import check_definition_data, validate_doctype_dir
from metadoc.persistence import Database, DatabaseConfig, create_database

logger = logging.getLogger(__name__)


# Global instances (initialized on startup)
db: Database | None = None
registry: SchemaRegistry | None = None
synchronizer: SchemaSynchronizer | None = None
engine: DocumentEngine | None = None
jwt_service: JWTService | None = None

# Created at import so applications can register hooks before startup
hook_registry = HookRegistry()


def _sync_metadata_dir(metadata_path: Path) -> None:
    """Synchronise every YAML definition; failures are logged, not fatal."""
    if metadata_path.is_dir():
        # Schema problems warn but don't block startup
        for issue in validate_doctype_dir(metadata_path):
            logger.warning("DocType schema error: %s", issue)

    loader = DocTypeLoader(metadata_path)
    loader.load_all()
    for definition in loader.sync_order():
        try:
            synchronizer.sync_doc_type(definition)
        except MetadocError as e:
            logger.error("Failed to sync DocType %s: %s", definition.name, e.message)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize on startup, cleanup on shutdown."""
    global db, registry, synchronizer, engine, jwt_service

    # Find metadata path (relative to cwd, which should be /backend)
    cwd = Path.cwd()
    if cwd.name == "backend":
        base_path = cwd.parent
    else:
        base_path = cwd
    metadata_path = Path(os.environ.get("METADOC_METADATA_PATH") or base_path / "metadata")

    # Initialize database (supports DATABASE_URL or METADOC_DB_PATH env vars)
    db = create_database(DatabaseConfig.from_env(base_path))
    registry = SchemaRegistry(db)
    registry.create_tables()
    synchronizer = SchemaSynchronizer(db, registry)

    _sync_metadata_dir(metadata_path)
    synchronizer.bootstrap()

    permissions = PermissionEvaluator(registry)
    app.state.permissions = permissions
    engine = DocumentEngine(db, registry, permissions=permissions, hooks=hook_registry)

    secret_key = os.environ.get("METADOC_SECRET_KEY", "dev-secret-key-change-in-production")
    jwt_service = JWTService(secret_key)

    yield

    # Cleanup
    if db:
        db.dispose()


app = FastAPI(title="Metadoc API", lifespan=lifespan)
app.add_middleware(AuthMiddleware, get_jwt_service=lambda: jwt_service)


@app.exception_handler(MetadocError)
async def metadoc_error_handler(request: Request, exc: MetadocError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


def _get_engine() -> DocumentEngine:
    if not engine:
        raise HTTPException(500, "Not initialized")
    return engine


def _get_registry() -> SchemaRegistry:
    if not registry:
        raise HTTPException(500, "Not initialized")
    return registry


class DocumentRequest(BaseModel):
    """Request body for create and update operations."""

    data: dict[str, Any]


# --- Metadata Endpoints ---


@app.get("/api/v1/meta")
def list_doc_types(
    user: UserContext = Depends(require_authenticated),
) -> dict[str, Any]:
    """List registered DocTypes with a summary of their fields."""
    doc_types = []
    for definition in _get_registry().list_doc_types():
        doc_types.append({
            "name": definition.name,
            "module": definition.module,
            "isSingle": definition.is_single,
            "isChild": definition.is_child,
            "fields": [
                {"name": f.name, "label": f.label, "type": f.type}
                for f in definition.fields
            ],
        })
    return {"data": doc_types}


@app.get("/api/v1/meta/{doc_type}")
def get_doc_type(
    doc_type: str,
    user: UserContext = Depends(require_authenticated),
) -> dict[str, Any]:
    """Get the full definition of a DocType, fields and permissions included."""
    definition = _get_registry().get_doc_type(doc_type)
    if definition is None:
        raise NotFoundError(f"DocType {doc_type} not found")
    return {"data": definition.to_dict()}


@app.post("/api/v1/meta", status_code=201)
def sync_doc_type(
    request: DocumentRequest,
    user: UserContext = Depends(require_super_role),
) -> dict[str, Any]:
    """Submit a DocType definition for synchronisation."""
    if not synchronizer:
        raise HTTPException(500, "Not initialized")
    errors = check_definition_data(request.data)
    if errors:
        raise ValidationFailedError(errors)
    definition = DocTypeDefinition.from_dict(request.data)
    stored = synchronizer.sync_doc_type(definition)
    logger.info("DocType %s synced by %s", stored.name, user.user_id)
    return {"data": stored.to_dict()}


# --- Document Endpoints ---


@app.post("/api/v1/{doc_type}", status_code=201)
def create_document(
    doc_type: str,
    request: DocumentRequest,
    user: UserContext = Depends(require_authenticated),
) -> dict[str, Any]:
    """Create a Draft document."""
    return {"data": _get_engine().create(doc_type, request.data, user)}


@app.get("/api/v1/{doc_type}")
def list_documents(
    doc_type: str,
    user: UserContext = Depends(require_authenticated),
) -> dict[str, Any]:
    """List the first page of the tenant's documents."""
    return {"data": _get_engine().find_all(doc_type, user)}


@app.get("/api/v1/{doc_type}/{name}")
def get_document(
    doc_type: str,
    name: str,
    user: UserContext = Depends(require_authenticated),
) -> dict[str, Any]:
    """Get a single document with its child tables."""
    return {"data": _get_engine().find_one(doc_type, name, user)}


@app.put("/api/v1/{doc_type}/{name}")
def update_document(
    doc_type: str,
    name: str,
    request: DocumentRequest,
    user: UserContext = Depends(require_authenticated),
) -> dict[str, Any]:
    """Patch a document; child tables present in the body are replaced."""
    return {"data": _get_engine().update(doc_type, name, request.data, user)}


@app.delete("/api/v1/{doc_type}/{name}")
def delete_document(
    doc_type: str,
    name: str,
    user: UserContext = Depends(require_authenticated),
) -> dict[str, Any]:
    """Delete a document and its child rows."""
    return {"data": _get_engine().delete(doc_type, name, user)}


@app.put("/api/v1/{doc_type}/{name}/submit")
def submit_document(
    doc_type: str,
    name: str,
    user: UserContext = Depends(require_authenticated),
) -> dict[str, Any]:
    """Move a Draft document to Submitted."""
    return {"data": _get_engine().submit(doc_type, name, user)}


@app.put("/api/v1/{doc_type}/{name}/cancel")
def cancel_document(
    doc_type: str,
    name: str,
    user: UserContext = Depends(require_authenticated),
) -> dict[str, Any]:
    """Move a Submitted document to Cancelled."""
    return {"data": _get_engine().cancel(doc_type, name, user)}
