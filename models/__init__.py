from .db import db
from .user import User
from .audit_log import AuditLog
from .session import Session
from .login_attempt import LoginAttempt
from .pending_verification import PendingVerification
from .video import Video
from .comment import Comment
from .like import Like
from .notification import Notification
