# backend/models/users.py
from sqlalchemy import Column, Integer, String, Boolean, DateTime, func
from database import Base

# Represents a staff account (admin, cashier, warehouse) acting on the dashboard and POS
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=True, index=True)
    full_name = Column(String, nullable=True)
    role = Column(String, nullable=False, default="cashier")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
