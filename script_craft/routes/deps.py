"""Request-scoped access to the app's session and service."""

from typing import Annotated

from fastapi import Depends, Request, UploadFile

from script_craft.documents import UploadedFile
from script_craft.service import ScriptCraft
from script_craft.session import Session


def get_session(request: Request) -> Session:
    return request.app.state.session


def get_service(request: Request) -> ScriptCraft:
    return request.app.state.service


SessionDep = Annotated[Session, Depends(get_session)]
ServiceDep = Annotated[ScriptCraft, Depends(get_service)]


async def read_upload(file: UploadFile) -> UploadedFile:
    return UploadedFile(
        name=file.filename or "upload",
        content_type=file.content_type or "",
        data=await file.read(),
    )
