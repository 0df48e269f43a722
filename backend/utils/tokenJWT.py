# utils/tokenJWT.py
from jose import jwt, JWTError
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from models.customers import Customer
from models.users import User
from utils.errors import AuthenticationError, PermissionDenied

PRINCIPAL_CUSTOMER = "customer"
PRINCIPAL_STAFF = "staff"

# Authorization scheme; missing headers are reported by the resolvers below
bearer_scheme = HTTPBearer(auto_error=False)

# Generate a new JWT access token for a known principal
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def token_for(principal_type: str, principal_id: int) -> str:
    return create_access_token({"sub": str(principal_id), "type": principal_type})

# Decode the bearer token and return the principal id for the expected type
def _principal_id(credentials: Optional[HTTPAuthorizationCredentials], expected_type: str) -> int:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Authentication required")
    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise AuthenticationError("Could not validate credentials")

    if payload.get("type") != expected_type:
        raise AuthenticationError("Authentication required")
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError):
        raise AuthenticationError("Could not validate credentials")

# Resolve the storefront customer behind the request
def get_current_customer(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Customer:
    customer_id = _principal_id(credentials, PRINCIPAL_CUSTOMER)
    customer = db.query(Customer).filter(Customer.id == customer_id, Customer.is_active == True).first()
    if customer is None:
        raise AuthenticationError("Could not validate credentials")
    return customer

# Resolve the staff member (dashboard / POS) behind the request
def get_current_staff(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    user_id = _principal_id(credentials, PRINCIPAL_STAFF)
    user = db.query(User).filter(User.id == user_id, User.is_active == True).first()
    if user is None:
        raise AuthenticationError("Could not validate credentials")
    return user

# Dependency factory for Role-Based Access Control
def role_required(*allowed_roles):
    allowed = {r.lower() for r in allowed_roles}
    def _checker(current_user: User = Depends(get_current_staff)):
        if allowed and (current_user.role or "").lower() not in allowed:
            raise PermissionDenied("Forbidden")
        return current_user
    return _checker
