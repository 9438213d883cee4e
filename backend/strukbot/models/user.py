from sqlalchemy import Column, Integer, String, ForeignKey, Table
from sqlalchemy.orm import relationship
from strukbot.db.base import Base

# Stores a store head may operate (regional heads get their whole region)
user_store_access = Table(
    "user_store_access",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("store_id", Integer, ForeignKey("stores.id", ondelete="CASCADE"), primary_key=True),
)


class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(64), unique=True, nullable=False)  # e.g. Kasir, Kepala Toko, Kepala Cabang


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    telegram_chat_id = Column(String(64), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    role_id = Column(Integer, ForeignKey("roles.id"), nullable=True)
    region_id = Column(Integer, ForeignKey("regions.id"), nullable=True)
    store_id = Column(Integer, ForeignKey("stores.id"), nullable=True)  # primary store
    active_store_id = Column(Integer, ForeignKey("stores.id"), nullable=True)  # store of the current session
    status = Column(String(32), nullable=False, default="active")  # active | inactive

    role = relationship("Role")
    store = relationship("Store", foreign_keys=[store_id])
    active_store = relationship("Store", foreign_keys=[active_store_id])
    stores = relationship("Store", secondary=user_store_access)

    def __repr__(self):
        return f"<User id={self.id} chat_id={self.telegram_chat_id}>"
