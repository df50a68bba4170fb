import uuid
from sqlalchemy import Column, String, DateTime, Uuid, func

from storefront.db.base import Base

ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    hashed_password = Column(String, nullable=False)
    role = Column(String(20), nullable=False, default=ROLE_CUSTOMER, server_default=ROLE_CUSTOMER)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def __repr__(self):
        return f"<User {self.email} role={self.role}>"
