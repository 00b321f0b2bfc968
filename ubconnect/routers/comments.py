from fastapi import APIRouter, Depends, Query, Request
from typing import List, Optional
from ubconnect.auth import get_current_user
from ubconnect.crud.comments import CommentsCRUD
from ubconnect.dependencies import get_comments_crud, get_current_profile
from ubconnect.middleware.rate_limit import rate_limit_api_write
from ubconnect.schemas.comment import Comment, CommentCreate, CommentsPage
from ubconnect.schemas.user import CurrentUser, UserProfile

router = APIRouter(prefix="/events/{event_id}/comments", tags=["comments"])


@router.get("", response_model=CommentsPage)
async def get_top_level_comments(
    event_id: str,
    page_size: Optional[int] = Query(None, ge=1, le=100),
    cursor: Optional[str] = None,
    current_user: CurrentUser = Depends(get_current_user),
    comments: CommentsCRUD = Depends(get_comments_crud),
):
    """Top-level comments, newest first. Pass the returned cursor to get the next page."""
    return await comments.fetch_top_level_comments(event_id, page_size, cursor)


@router.get("/all", response_model=List[Comment])
async def get_all_comments(
    event_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    comments: CommentsCRUD = Depends(get_comments_crud),
):
    return await comments.fetch_event_comments(event_id)


@router.get("/{root_id}/replies", response_model=CommentsPage)
async def get_replies(
    event_id: str,
    root_id: str,
    page_size: Optional[int] = Query(None, ge=1, le=100),
    cursor: Optional[str] = None,
    current_user: CurrentUser = Depends(get_current_user),
    comments: CommentsCRUD = Depends(get_comments_crud),
):
    """Replies to one top-level comment, oldest first."""
    return await comments.fetch_replies(event_id, root_id, page_size, cursor)


@router.post("", response_model=Comment, status_code=201)
@rate_limit_api_write
async def add_comment(
    request: Request,
    event_id: str,
    body: CommentCreate,
    profile: UserProfile = Depends(get_current_profile),
    comments: CommentsCRUD = Depends(get_comments_crud),
):
    """Comment on an event, or reply inside a thread when ``reply_to`` is set."""
    return await comments.add_comment(event_id, body.text, profile.uid, profile.display_name, body.reply_to)
