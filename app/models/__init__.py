# Base.metadata에 모든 테이블을 등록하기 위한 import
from app.models.user import User, UserStatus  # noqa: F401
from app.models.tokens import RefreshToken, VerificationToken, PasswordResetToken  # noqa: F401
from app.models.group import Group, GroupMember, GroupRole  # noqa: F401
from app.models.task import Task, TaskStatus  # noqa: F401
