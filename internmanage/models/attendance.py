"""
Attendance Model
"""
from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from internmanage.database import Base

SYSTEM_MARKER = "System"


class AttendanceStatus(str, enum.Enum):
    PRESENT = "Present"
    LATE = "Late"
    HALF_DAY = "Half-day"
    ABSENT = "Absent"
    APPROVED_LEAVE = "Approved Leave"


class Attendance(Base):
    __tablename__ = "attendance"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    status = Column(SQLEnum(AttendanceStatus), default=AttendanceStatus.PRESENT, nullable=False)
    remarks = Column(String(255), nullable=True)
    # A user id for developer-marked rows, "System" for auto-marked ones
    marked_by = Column(String(64), nullable=True)
    marked_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    user = relationship("User", back_populates="attendance_records")

    __table_args__ = (
        UniqueConstraint("user_id", "date", name="unique_attendance_day"),
    )
