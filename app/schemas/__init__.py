from app.schemas.common import APIResponse, ErrorResponse
from app.schemas.auth import (
    SendOTPRequest, SendOTPData, VerifyOTPRequest, RegisterRequest, LoginRequest, AuthData,
)
from app.schemas.user import (
    UserPublic, UserSummary, VehicleOut, ProfileUpdateRequest, UserData, UserSummaryData,
    UsernameAvailability,
)
from app.schemas.social import (
    SocialUser, UserProfileOut, FriendRequestTarget, FriendRequestAction, FriendRequestOut,
    FriendRequestData, FriendRequestListData, FriendListData, SocialUserListData, UserProfileData,
)
from app.schemas.chat import (
    MessageOut, ConversationOut, MessageCreateRequest, ReadState, ConversationData,
    ConversationListData, MessageData, MessageListData, ReadStateData,
)
