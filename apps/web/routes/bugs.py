"""API багов, комментариев и скриншотов."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from apps.web.middleware.auth_middleware import require_admin
from core.config.settings import settings
from core.database.session import get_db_session
from core.exceptions import ValidationError
from shared.services.bug_service import BugService
from shared.services.comment_service import CommentService
from shared.services.screenshot_service import ScreenshotService

router = APIRouter(dependencies=[Depends(require_admin)])


class BugCreateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    testerId: Optional[int] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    type: Optional[str] = None


class BugUpdateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    type: Optional[str] = None


class BugStatusRequest(BaseModel):
    status: Optional[str] = None


class BugPriorityRequest(BaseModel):
    priority: Optional[str] = None


class CommentCreateRequest(BaseModel):
    content: Optional[str] = None
    authorId: Optional[int] = None
    authorName: Optional[str] = None


class CommentUpdateRequest(BaseModel):
    content: Optional[str] = None
    authorId: Optional[int] = None


class CommentDeleteRequest(BaseModel):
    authorId: Optional[int] = None


def _require_author(author_id: Optional[int]) -> int:
    if author_id is None:
        raise ValidationError.single("authorId", "ID автора обязательно")
    return author_id


# === Баги ===

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_bug(payload: BugCreateRequest, session: AsyncSession = Depends(get_db_session)):
    bug = await BugService(session).create_bug(payload.model_dump())
    return {"success": True, "data": bug, "message": "Баг успешно создан"}


@router.get("")
async def list_bugs(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    search: Optional[str] = Query(None),
    bug_status: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = Query(None),
    bug_type: Optional[str] = Query(None, alias="type"),
    tester_id: Optional[int] = Query(None, alias="testerId"),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("DESC", alias="sortOrder"),
    session: AsyncSession = Depends(get_db_session),
):
    result = await BugService(session).get_all_bugs(
        page=page,
        page_size=page_size,
        search=search,
        status=bug_status,
        priority=priority,
        type=bug_type,
        tester_id=tester_id,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {"success": True, "data": result}


@router.get("/statistics")
async def bug_statistics(session: AsyncSession = Depends(get_db_session)):
    return {"success": True, "data": await BugService(session).get_bug_statistics()}


@router.get("/tester/{tester_id}")
async def bugs_by_tester(tester_id: int, session: AsyncSession = Depends(get_db_session)):
    result = await BugService(session).get_bugs_by_tester_id(tester_id)
    return {"success": True, "data": result["data"], "count": result["count"]}


@router.get("/{bug_id}")
async def get_bug(bug_id: int, session: AsyncSession = Depends(get_db_session)):
    return {"success": True, "data": await BugService(session).get_bug_by_id(bug_id)}


@router.put("/{bug_id}")
async def update_bug(bug_id: int, payload: BugUpdateRequest, session: AsyncSession = Depends(get_db_session)):
    bug = await BugService(session).update_bug(bug_id, payload.model_dump(exclude_unset=True))
    return {"success": True, "data": bug}


@router.patch("/{bug_id}/status")
async def update_bug_status(bug_id: int, payload: BugStatusRequest, session: AsyncSession = Depends(get_db_session)):
    bug = await BugService(session).update_bug_status(bug_id, payload.status)
    return {"success": True, "data": bug}


@router.patch("/{bug_id}/priority")
async def update_bug_priority(
    bug_id: int,
    payload: BugPriorityRequest,
    session: AsyncSession = Depends(get_db_session),
):
    bug = await BugService(session).update_bug_priority(bug_id, payload.priority)
    return {"success": True, "data": bug}


@router.delete("/{bug_id}")
async def delete_bug(bug_id: int, session: AsyncSession = Depends(get_db_session)):
    message = await BugService(session).delete_bug(bug_id)
    return {"success": True, "message": message}


# === Комментарии ===

@router.post("/{bug_id}/comments", status_code=status.HTTP_201_CREATED)
async def create_comment(
    bug_id: int,
    payload: CommentCreateRequest,
    session: AsyncSession = Depends(get_db_session),
):
    comment = await CommentService(session).create_comment(bug_id, payload.model_dump())
    return {"success": True, "data": comment}


@router.get("/{bug_id}/comments")
async def list_comments(bug_id: int, session: AsyncSession = Depends(get_db_session)):
    result = await CommentService(session).get_comments_by_bug_id(bug_id)
    return {"success": True, "data": result["data"], "count": result["count"]}


@router.put("/{bug_id}/comments/{comment_id}")
async def update_comment(
    bug_id: int,
    comment_id: int,
    payload: CommentUpdateRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Редактирование комментария автором в течение окна редактирования."""
    author_id = _require_author(payload.authorId)
    comment = await CommentService(session).update_comment(bug_id, comment_id, author_id, payload.content)
    return {"success": True, "data": comment}


@router.delete("/{bug_id}/comments/{comment_id}")
async def delete_comment(
    bug_id: int,
    comment_id: int,
    payload: Optional[CommentDeleteRequest] = None,
    author_id: Optional[int] = Query(None, alias="authorId"),
    session: AsyncSession = Depends(get_db_session),
):
    """authorId принимается из тела запроса или из query."""
    if payload and payload.authorId is not None:
        author_id = payload.authorId
    await CommentService(session).delete_comment(bug_id, comment_id, _require_author(author_id))
    return {"success": True, "message": "Комментарий успешно удален"}


# === Скриншоты ===

@router.post("/{bug_id}/screenshots", status_code=status.HTTP_201_CREATED)
async def upload_screenshot(
    bug_id: int,
    screenshot: Optional[UploadFile] = File(None),
    session: AsyncSession = Depends(get_db_session),
):
    if screenshot is None:
        raise ValidationError.single("screenshot", "Файл не загружен")

    # Читаем на байт больше лимита, чтобы отличить слишком большой файл
    content = await screenshot.read(settings.screenshot_max_bytes + 1)
    await screenshot.close()

    result = await ScreenshotService(session).upload_screenshot(
        bug_id,
        screenshot.filename,
        content,
        screenshot.content_type,
    )
    return {"success": True, "data": result, "message": "Скриншот успешно загружен"}


@router.get("/{bug_id}/screenshots")
async def list_screenshots(bug_id: int, session: AsyncSession = Depends(get_db_session)):
    result = await ScreenshotService(session).get_screenshots_by_bug_id(bug_id)
    return {"success": True, **result}


@router.get("/{bug_id}/screenshots/statistics")
async def screenshot_statistics(bug_id: int, session: AsyncSession = Depends(get_db_session)):
    return {"success": True, "data": await ScreenshotService(session).get_screenshot_statistics(bug_id)}


@router.delete("/{bug_id}/screenshots/{screenshot_id}")
async def delete_screenshot(bug_id: int, screenshot_id: int, session: AsyncSession = Depends(get_db_session)):
    await ScreenshotService(session).delete_screenshot(bug_id, screenshot_id)
    return {"success": True, "message": "Скриншот успешно удален"}
