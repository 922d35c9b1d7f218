from .admin_action import AdminAction
from .ban import UserBan
from .cancellation import CancellationRequest, RetentionOffer
from .prompt_generation import PromptGeneration
from .tip import Tip
from .user import User
from .settings import Settings

__all__ = [
    "AdminAction",
    "UserBan",
    "CancellationRequest",
    "RetentionOffer",
    "PromptGeneration",
    "Tip",
    "User",
    "Settings",
]
