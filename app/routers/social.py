"""
Social router: user discovery, friend requests and friendships.
Every route requires a session token.
"""
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.core.dependencies import get_current_user
from app.core.exceptions import NotFoundException, ValidationException
from app.models.user import User
from app.schemas.common import APIResponse
from app.schemas.social import (
    FriendRequestTarget, FriendRequestAction, FriendRequestOut,
    FriendRequestData, FriendRequestListData, FriendListData,
    SocialUserListData, UserProfileData,
)
from app.schemas.user import UserSummary
from app.services import social_service

router = APIRouter()


# ── Discovery ─────────────────────────────────────────────────────────────────

@router.get("/users/search", response_model=APIResponse[SocialUserListData])
def search_users(
    q: Optional[str] = None,
    limit: int = social_service.SEARCH_DEFAULT_LIMIT,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """A 9-digit query also matches the public id exactly; otherwise username substring."""
    if not q or not q.strip():
        raise ValidationException('Query parameter "q" is required')
    users = social_service.search_users(db, q, current_user.id, limit=limit)
    return APIResponse(data=SocialUserListData(users=users))


@router.get("/users/suggested", response_model=APIResponse[SocialUserListData])
def suggested_users(
    limit: int = social_service.SUGGESTED_DEFAULT_LIMIT,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    users = social_service.suggested_users(db, current_user.id, limit=limit)
    return APIResponse(data=SocialUserListData(users=users))


@router.get("/users/{user_id}/profile", response_model=APIResponse[UserProfileData])
def get_user_profile(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    profile = social_service.get_user_profile(db, user_id, current_user.id)
    if profile is None:
        raise NotFoundException("User")
    return APIResponse(data=UserProfileData(user=profile))


# ── Friend requests ───────────────────────────────────────────────────────────

@router.post(
    "/friend-requests",
    response_model=APIResponse[FriendRequestData],
    status_code=status.HTTP_201_CREATED,
)
def send_friend_request(
    body: FriendRequestTarget,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    target = social_service.resolve_target(
        db,
        to_user_id=body.to_user_id,
        to_unique_id=body.to_unique_id,
        to_username=body.to_username,
    )
    if not target:
        raise ValidationException("Provide a valid target: to_user_id, to_unique_id, or to_username")

    request = social_service.send_friend_request(db, current_user, target)
    return APIResponse(
        message="Friend request sent",
        data=FriendRequestData(request=FriendRequestOut.model_validate(request)),
    )


@router.get("/friend-requests/pending", response_model=APIResponse[FriendRequestListData])
def list_pending_requests(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Requests waiting on the caller, newest first."""
    requests = social_service.list_pending_received(db, current_user.id)
    return APIResponse(data=FriendRequestListData(requests=requests))


@router.get("/friend-requests/sent", response_model=APIResponse[FriendRequestListData])
def list_sent_requests(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    requests = social_service.list_pending_sent(db, current_user.id)
    return APIResponse(data=FriendRequestListData(requests=requests))


@router.patch("/friend-requests/{request_id}", response_model=APIResponse[FriendRequestData])
def respond_friend_request(
    request_id: int,
    body: FriendRequestAction,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    request = social_service.respond_friend_request(db, request_id, current_user.id, body.action)
    message = "Friend request accepted" if request.status == "accepted" else "Friend request rejected"
    return APIResponse(
        message=message,
        data=FriendRequestData(request=FriendRequestOut.model_validate(request)),
    )


@router.delete("/friend-requests/{request_id}", response_model=APIResponse[FriendRequestData])
def cancel_friend_request(
    request_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    request = social_service.cancel_friend_request(db, request_id, current_user.id)
    return APIResponse(message="Friend request cancelled", data=FriendRequestData(request=request))


# ── Friends ───────────────────────────────────────────────────────────────────

@router.get("/friends", response_model=APIResponse[FriendListData])
def list_friends(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    friends = social_service.list_friends(db, current_user.id)
    return APIResponse(data=FriendListData(friends=[UserSummary.model_validate(u) for u in friends]))


@router.delete("/friends/{user_id}", response_model=APIResponse[None])
def remove_friend(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Removing a friendship that does not exist still succeeds."""
    social_service.remove_friendship(db, current_user.id, user_id)
    return APIResponse(message="Friend removed")
