"""
Social graph service: friend requests, friendships and the relationship views
built from them (search, suggestions, profiles).

Friend request lifecycle:
    pending -> accepted   (side effect: canonical friendship row, idempotent)
    pending -> rejected
Resolved requests are never modified again.

Friendship rows are always addressed through canonical_pair(); the storage order
of a row says nothing about who sent the original request.
"""
import logging
import random
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictException, NotFoundException, ValidationException
from app.core.pairs import canonical_pair
from app.models.social import FriendRequest, Friendship
from app.models.user import User, UNIQUE_ID_MIN, UNIQUE_ID_MAX
from app.models.vehicle import Vehicle
from app.schemas.social import FriendRequestOut, SocialUser, UserProfileOut
from app.schemas.user import UserSummary, VehicleOut
from app.services import user_service

logger = logging.getLogger(__name__)

RESPONSE_ACTIONS = {"accept": "accepted", "reject": "rejected"}

SEARCH_DEFAULT_LIMIT = 20
SEARCH_MAX_LIMIT = 50
SUGGESTED_DEFAULT_LIMIT = 4
SUGGESTED_MAX_LIMIT = 20
SUGGESTED_POOL_FACTOR = 3


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


# ── Friendships ───────────────────────────────────────────────────────────────

def _get_friendship(db: Session, user_a_id: int, user_b_id: int) -> Optional[Friendship]:
    user_one_id, user_two_id = canonical_pair(user_a_id, user_b_id)
    return (
        db.query(Friendship)
        .filter(Friendship.user_one_id == user_one_id, Friendship.user_two_id == user_two_id)
        .first()
    )


def are_friends(db: Session, user_a_id: int, user_b_id: int) -> bool:
    return _get_friendship(db, user_a_id, user_b_id) is not None


def ensure_friendship(db: Session, user_a_id: int, user_b_id: int) -> Friendship:
    """
    Idempotent insert of the canonical pair. Does not commit; the caller's
    transaction decides. A unique-constraint hit means the row already exists.
    """
    existing = _get_friendship(db, user_a_id, user_b_id)
    if existing:
        return existing

    user_one_id, user_two_id = canonical_pair(user_a_id, user_b_id)
    friendship = Friendship(user_one_id=user_one_id, user_two_id=user_two_id)
    try:
        with db.begin_nested():
            db.add(friendship)
    except IntegrityError:
        return _get_friendship(db, user_a_id, user_b_id)
    return friendship


def remove_friendship(db: Session, user_a_id: int, user_b_id: int) -> bool:
    """Delete the pair in whichever order it was stored. Returns whether a row went away."""
    user_one_id, user_two_id = canonical_pair(user_a_id, user_b_id)
    removed = (
        db.query(Friendship)
        .filter(Friendship.user_one_id == user_one_id, Friendship.user_two_id == user_two_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    if removed:
        logger.info(f"Friendship removed: {user_one_id} <-> {user_two_id}")
    return bool(removed)


def friend_ids(db: Session, user_id: int) -> set[int]:
    rows = (
        db.query(Friendship.user_one_id, Friendship.user_two_id)
        .filter(or_(Friendship.user_one_id == user_id, Friendship.user_two_id == user_id))
        .all()
    )
    return {two if one == user_id else one for one, two in rows}


def list_friends(db: Session, user_id: int) -> list[User]:
    """Friends of user_id, most recent friendship first."""
    rows = (
        db.query(Friendship.user_one_id, Friendship.user_two_id)
        .filter(or_(Friendship.user_one_id == user_id, Friendship.user_two_id == user_id))
        .order_by(Friendship.created_at.desc(), Friendship.id.desc())
        .all()
    )
    ordered_ids = [two if one == user_id else one for one, two in rows]
    users = _users_by_ids(db, ordered_ids)
    return [users[i] for i in ordered_ids if i in users]


def _users_by_ids(db: Session, ids) -> dict[int, User]:
    ids = set(ids)
    if not ids:
        return {}
    return {u.id: u for u in db.query(User).filter(User.id.in_(list(ids))).all()}


# ── Friend requests ───────────────────────────────────────────────────────────

def get_pending_request(db: Session, sender_id: int, receiver_id: int) -> Optional[FriendRequest]:
    return (
        db.query(FriendRequest)
        .filter(
            FriendRequest.sender_id == sender_id,
            FriendRequest.receiver_id == receiver_id,
            FriendRequest.status == "pending",
        )
        .first()
    )


def resolve_target(
    db: Session,
    to_user_id: Optional[int] = None,
    to_unique_id: Optional[int] = None,
    to_username: Optional[str] = None,
) -> Optional[User]:
    """First supplied identifier wins: internal id, then public id, then username."""
    if to_user_id is not None:
        return user_service.get_by_id(db, to_user_id)
    if to_unique_id is not None:
        return user_service.get_by_unique_id(db, to_unique_id)
    if to_username is not None:
        return user_service.get_by_username(db, to_username)
    return None


def send_friend_request(db: Session, sender: User, target: User) -> FriendRequest:
    if target.id == sender.id:
        raise ValidationException("You cannot send a friend request to yourself")

    if are_friends(db, sender.id, target.id):
        raise ConflictException("You are already friends")

    if get_pending_request(db, sender.id, target.id):
        raise ConflictException("Friend request already sent")

    if get_pending_request(db, target.id, sender.id):
        raise ConflictException(
            "This user already sent you a friend request. Accept it from pending requests."
        )

    request = FriendRequest(sender_id=sender.id, receiver_id=target.id, status="pending")
    db.add(request)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent duplicate caught by the partial unique index
        db.rollback()
        raise ConflictException("Friend request already sent")
    db.refresh(request)
    logger.info(f"Friend request {request.id}: {sender.id} -> {target.id}")
    return request


def respond_friend_request(db: Session, request_id: int, receiver_id: int, action: str) -> FriendRequest:
    """
    Accept or reject a pending request addressed to receiver_id.
    Anything else (unknown id, already resolved, addressed to someone else) is
    reported as not found.
    """
    action = (action or "").strip().lower()
    if action not in RESPONSE_ACTIONS:
        raise ValidationException('Action must be "accept" or "reject"')

    request = (
        db.query(FriendRequest)
        .filter(
            FriendRequest.id == request_id,
            FriendRequest.receiver_id == receiver_id,
            FriendRequest.status == "pending",
        )
        .with_for_update()
        .first()
    )
    if not request:
        raise NotFoundException("Pending request")

    request.status = RESPONSE_ACTIONS[action]
    request.responded_at = datetime.now(timezone.utc)
    if request.status == "accepted":
        ensure_friendship(db, request.sender_id, request.receiver_id)

    db.commit()
    db.refresh(request)
    logger.info(f"Friend request {request.id} {request.status} by user {receiver_id}")
    return request


def cancel_friend_request(db: Session, request_id: int, sender_id: int) -> FriendRequestOut:
    """Withdraw a pending request. Only its sender may cancel it."""
    request = (
        db.query(FriendRequest)
        .filter(
            FriendRequest.id == request_id,
            FriendRequest.sender_id == sender_id,
            FriendRequest.status == "pending",
        )
        .first()
    )
    if not request:
        raise NotFoundException("Pending request")

    snapshot = FriendRequestOut.model_validate(request)
    db.delete(request)
    db.commit()
    logger.info(f"Friend request {request_id} cancelled by user {sender_id}")
    return snapshot


def _with_parties(db: Session, requests: list[FriendRequest]) -> list[FriendRequestOut]:
    users = _users_by_ids(db, [r.sender_id for r in requests] + [r.receiver_id for r in requests])
    out = []
    for r in requests:
        sender = users.get(r.sender_id)
        receiver = users.get(r.receiver_id)
        out.append(
            FriendRequestOut.model_validate(r).model_copy(
                update={
                    "sender": UserSummary.model_validate(sender) if sender else None,
                    "receiver": UserSummary.model_validate(receiver) if receiver else None,
                }
            )
        )
    return out


def list_pending_received(db: Session, user_id: int) -> list[FriendRequestOut]:
    requests = (
        db.query(FriendRequest)
        .filter(FriendRequest.receiver_id == user_id, FriendRequest.status == "pending")
        .order_by(FriendRequest.created_at.desc(), FriendRequest.id.desc())
        .all()
    )
    return _with_parties(db, requests)


def list_pending_sent(db: Session, user_id: int) -> list[FriendRequestOut]:
    requests = (
        db.query(FriendRequest)
        .filter(FriendRequest.sender_id == user_id, FriendRequest.status == "pending")
        .order_by(FriendRequest.created_at.desc(), FriendRequest.id.desc())
        .all()
    )
    return _with_parties(db, requests)


# ── Relationship views ────────────────────────────────────────────────────────

def _relationship(
    user_id: int, friends: set[int], sent: set[int], received: set[int]
) -> str:
    if user_id in friends:
        return "friends"
    if user_id in sent:
        return "request_sent"
    if user_id in received:
        return "request_received"
    return "none"


def enrich_users(db: Session, users: list[User], current_user_id: int) -> list[SocialUser]:
    """
    Attach the caller's relationship to each user and each user's primary vehicle.
    Pending requests are read in both directions in one query.
    """
    if not users:
        return []

    ids = [u.id for u in users]
    primary_vehicles = {
        v.user_id: v
        for v in db.query(Vehicle).filter(Vehicle.user_id.in_(ids), Vehicle.is_primary == True).all()  # noqa: E712
    }

    friends = friend_ids(db, current_user_id)
    pending = (
        db.query(FriendRequest.sender_id, FriendRequest.receiver_id)
        .filter(
            FriendRequest.status == "pending",
            or_(FriendRequest.sender_id == current_user_id, FriendRequest.receiver_id == current_user_id),
        )
        .all()
    )
    sent = {receiver for sender, receiver in pending if sender == current_user_id}
    received = {sender for sender, receiver in pending if receiver == current_user_id}

    enriched = []
    for user in users:
        vehicle = primary_vehicles.get(user.id)
        enriched.append(
            SocialUser(
                **UserSummary.model_validate(user).model_dump(),
                is_friend=user.id in friends,
                friendship_status=_relationship(user.id, friends, sent, received),
                primary_vehicle=VehicleOut.model_validate(vehicle) if vehicle else None,
            )
        )
    return enriched


def search_users(db: Session, query: str, current_user_id: int, limit: int = SEARCH_DEFAULT_LIMIT) -> list[SocialUser]:
    """
    Case-insensitive username substring match. A query that is a 9-digit public id
    also matches that account exactly.
    """
    q = (query or "").strip().lower()
    if not q:
        return []

    name_match = User.username_normalized.contains(q, autoescape=True)
    criteria = name_match
    if q.isascii() and q.isdigit() and UNIQUE_ID_MIN <= int(q) <= UNIQUE_ID_MAX:
        criteria = or_(User.unique_id == int(q), name_match)

    users = (
        db.query(User)
        .filter(User.id != current_user_id, criteria)
        .order_by(User.username_normalized.asc())
        .limit(_clamp(limit, 1, SEARCH_MAX_LIMIT))
        .all()
    )
    return enrich_users(db, users, current_user_id)


def suggested_users(db: Session, current_user_id: int, limit: int = SUGGESTED_DEFAULT_LIMIT) -> list[SocialUser]:
    """Random picks from the newest non-friend accounts; the pool is 3x the limit."""
    limit = _clamp(limit, 1, SUGGESTED_MAX_LIMIT)
    excluded = friend_ids(db, current_user_id) | {current_user_id}

    pool = (
        db.query(User)
        .filter(User.id.notin_(list(excluded)))
        .order_by(User.created_at.desc(), User.id.desc())
        .limit(limit * SUGGESTED_POOL_FACTOR)
        .all()
    )
    selected = random.sample(pool, min(limit, len(pool)))
    return enrich_users(db, selected, current_user_id)


def get_user_profile(db: Session, target_id: int, viewer_id: Optional[int] = None) -> Optional[UserProfileOut]:
    """
    Full profile of target_id as seen by viewer_id: garage, friend count, mutual
    friends and the pending request between the two, if any.
    """
    user = user_service.get_by_id(db, target_id)
    if not user:
        return None

    vehicles = (
        db.query(Vehicle)
        .filter(Vehicle.user_id == target_id)
        .order_by(Vehicle.is_primary.desc(), Vehicle.created_at.asc(), Vehicle.id.asc())
        .all()
    )
    target_friends = friend_ids(db, target_id)

    friendship_status = "none"
    friend_request_id = None
    mutual_friends_count = 0
    if viewer_id is not None and viewer_id != target_id:
        if viewer_id in target_friends:
            friendship_status = "friends"
        else:
            sent = get_pending_request(db, viewer_id, target_id)
            received = None if sent else get_pending_request(db, target_id, viewer_id)
            if sent:
                friendship_status, friend_request_id = "request_sent", sent.id
            elif received:
                friendship_status, friend_request_id = "request_received", received.id
        mutual_friends_count = len(target_friends & friend_ids(db, viewer_id))

    primary = next((v for v in vehicles if v.is_primary), None)
    return UserProfileOut(
        **UserSummary.model_validate(user).model_dump(),
        created_at=user.created_at,
        is_friend=friendship_status == "friends",
        friendship_status=friendship_status,
        friend_request_id=friend_request_id,
        friend_count=len(target_friends),
        mutual_friends_count=mutual_friends_count,
        primary_vehicle=VehicleOut.model_validate(primary) if primary else None,
        vehicles=[VehicleOut.model_validate(v) for v in vehicles],
    )
