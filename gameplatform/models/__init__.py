"""
Game Platform Backend: ORM Models
===================================

Importing this package registers every table with `Base.metadata`
(Alembic autogenerate and the test suite rely on it).
"""

from gameplatform.models.user import User, UserSession, RevokedToken
from gameplatform.models.studio import StudioProfile
from gameplatform.models.game import Game
from gameplatform.models.review import Review, GameRating
from gameplatform.models.notification import Notification, NotificationSettings
from gameplatform.models.social import Friendship, Message
from gameplatform.models.security_event import SecurityEvent, IPBlock, SecurityAlert

__all__ = [
    "User",
    "UserSession",
    "RevokedToken",
    "StudioProfile",
    "Game",
    "Review",
    "GameRating",
    "Notification",
    "NotificationSettings",
    "Friendship",
    "Message",
    "SecurityEvent",
    "IPBlock",
    "SecurityAlert",
]
