"""
User model. A user is a customer, a vehicle owner or an admin.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, Integer, String
from sqlalchemy.orm import relationship

from autofleet.db.base import Base, TimestampMixin
from autofleet.models.enums import UserRole, check_in, enum_column_type


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=True)
    role = Column(enum_column_type(UserRole), nullable=False, default=UserRole.CUSTOMER)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    vehicles = relationship("Vehicle", back_populates="owner")
    bookings = relationship("Booking", back_populates="customer")

    __table_args__ = (
        CheckConstraint(check_in("role", UserRole), name="check_user_role"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
