"""FastAPI API endpoints under /api.

Endpoint groups: personas (CRUD, import/export, analysis, attachments),
documents (upload, removal, topics), script (intro, generation, editing,
revision, next line, export) and settings. All of them act on the one
in-memory Session held in app.state.
"""

from fastapi import APIRouter

from .documents import router as documents_router
from .personas import router as personas_router
from .script import router as script_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(personas_router)
router.include_router(documents_router)
router.include_router(script_router)
