"""
One-time password database model.
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey
from ryde.app.db.session import Base
from ryde.app.models.enums import OtpPurpose
from ryde.app.core.clock import utcnow


class OtpCode(Base):
    """
    One-time code proving control of a user's email address.

    Several rows may be outstanding for one user; only the most recently
    created one is ever checked. Rows are deleted when consumed or once
    `otp_expiry` has passed (hourly sweep). Expiry and creation times are
    naive UTC.
    """
    __tablename__ = "otp_codes"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    otp = Column(String(32), nullable=False)
    purpose = Column(
        Enum(OtpPurpose, values_callable=lambda purposes: [p.value for p in purposes], name="otp_purpose"),
        nullable=False,
    )
    otp_expiry = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<OtpCode(id={self.id}, user_id={self.user_id}, purpose='{self.purpose.value}')>"
