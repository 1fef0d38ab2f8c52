"""Admin profile lookup with active-status and forced-logout checks"""
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lostfound_admin.errors import DependencyFailure
from lostfound_admin.models.admin_user import AdminUser
from lostfound_admin.utils.clock import utcnow
from lostfound_admin.utils.logger import logger


class AdminProfileResolver:
    """Map a principal to its admin profile, fresh on every call.

    Returns ``None`` (deny) when there is no profile, when it is inactive, or
    when its ``force_logout_at`` has passed. A passed forced logout is cleared
    as it denies, so it takes effect exactly once.
    """

    def resolve(self, db: Session, principal_id: str, now: Optional[datetime] = None) -> Optional[AdminUser]:
        now = now or utcnow()

        try:
            profile = db.query(AdminUser).filter(AdminUser.user_id == principal_id).first()
            if profile is None or not profile.is_active:
                return None

            if profile.force_logout_at is not None and profile.force_logout_at <= now:
                profile.force_logout_at = None
                db.commit()
                logger.info(
                    "Forced logout applied",
                    extra={"admin_id": profile.id, "action": "FORCE_LOGOUT"},
                )
                return None

            return profile
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(f"Admin profile lookup failed: {exc}", extra={"action": "resolve_admin"})
            raise DependencyFailure("Authentication error")
