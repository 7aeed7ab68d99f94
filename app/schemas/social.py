"""
Social graph schemas: friend requests, friendship status views, search results.
"""
from pydantic import BaseModel, ConfigDict
from typing import List, Literal, Optional
from datetime import datetime

from app.schemas.user import UserSummary, VehicleOut

FriendshipStatus = Literal["none", "friends", "request_sent", "request_received"]


class SocialUser(UserSummary):
    """A user as seen by the caller: relationship state plus primary vehicle."""
    is_friend: bool = False
    friendship_status: FriendshipStatus = "none"
    primary_vehicle: Optional[VehicleOut] = None


class UserProfileOut(SocialUser):
    created_at: Optional[datetime] = None
    friend_count: int = 0
    mutual_friends_count: int = 0
    friend_request_id: Optional[int] = None
    vehicles: List[VehicleOut] = []


class FriendRequestTarget(BaseModel):
    to_user_id: Optional[int] = None
    to_unique_id: Optional[int] = None
    to_username: Optional[str] = None


class FriendRequestAction(BaseModel):
    action: str


class FriendRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sender_id: int
    receiver_id: int
    status: str
    created_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    sender: Optional[UserSummary] = None
    receiver: Optional[UserSummary] = None


class FriendRequestData(BaseModel):
    request: FriendRequestOut


class FriendRequestListData(BaseModel):
    requests: List[FriendRequestOut]


class FriendListData(BaseModel):
    friends: List[UserSummary]


class SocialUserListData(BaseModel):
    users: List[SocialUser]


class UserProfileData(BaseModel):
    user: UserProfileOut
