from models.base_model import Base, BaseModel
from sqlalchemy import Boolean, Column, DateTime, String


class User(BaseModel, Base):
    __tablename__ = "users"

    username = Column(String(50), nullable=False, unique=True, index=True)
    # Always stored lower-cased
    email = Column(String(100), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    phone_number = Column(String(15), nullable=True)
    # Soft delete: inactive users can neither log in nor use outstanding tokens
    active = Column(Boolean, nullable=False, default=True, index=True)
    last_login = Column(DateTime(timezone=True), nullable=True)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def __repr__(self):
        return f"<User username={self.username}>"
