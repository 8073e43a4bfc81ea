import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from script_craft.config import AppConfig, load_config
from script_craft.llm import LLM, llm_from_config
from script_craft.models import InputError
from script_craft.parsing import ResponseFormatError, SpeakerPolicy
from script_craft.prompts import PromptError
from script_craft.routes import router
from script_craft.service import GenerationError, ScriptCraft
from script_craft.session import NotFoundError, Session

logger = logging.getLogger(__name__)


def _error(status: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status, content={"detail": str(exc)})
    return handler


def create_app(
    llm: LLM | None = None,
    config: AppConfig | None = None,
    policy: SpeakerPolicy = "drop_invalid",
) -> FastAPI:
    """Build the app around one in-memory session.

    `llm` overrides the client picked from configuration (tests pass a stub).
    """
    if llm is None:
        llm = llm_from_config(config or load_config())

    app = FastAPI(title="Script Craft")
    app.state.session = Session()
    app.state.service = ScriptCraft(llm, policy=policy)
    app.include_router(router, prefix="/api")

    app.add_exception_handler(InputError, _error(400))
    app.add_exception_handler(NotFoundError, _error(404))
    app.add_exception_handler(ResponseFormatError, _error(502))
    app.add_exception_handler(GenerationError, _error(502))
    app.add_exception_handler(PromptError, _error(500))
    return app
