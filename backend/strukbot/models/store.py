from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship
from strukbot.db.base import Base


class Region(Base):
    __tablename__ = "regions"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)


class Store(Base):
    __tablename__ = "stores"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    region_id = Column(Integer, ForeignKey("regions.id"), nullable=True, index=True)
    status = Column(String(32), nullable=False, default="active")  # active | closed

    region = relationship("Region", backref="stores")
