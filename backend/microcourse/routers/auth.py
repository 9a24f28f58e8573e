from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel, EmailStr
import logging

from ..settings import settings
from ..deps import get_store
from ..errors import NotAuthenticated
from ..policy import ensure_roles
from ..records import AuthSession, Organization, User, new_id, utcnow
from ..store import DomainStore

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger(__name__)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


class LoginRequest(BaseModel):
	email: EmailStr


class LoginResponse(BaseModel):
	access_token: str
	token_type: str = "bearer"
	user: User


def _resolve_expiry(expires_delta: Optional[timedelta]) -> datetime:
	delta = expires_delta
	if delta is None:
		minutes = settings.access_token_expire_minutes
		delta = timedelta(minutes=minutes) if minutes > 0 else timedelta(days=1)
	return datetime.now(timezone.utc) + delta


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
	to_encode = data.copy()
	to_encode.update({"exp": _resolve_expiry(expires_delta)})
	return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _decode(token: str) -> Optional[dict]:
	try:
		return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
	except JWTError:
		return None


def find_or_create_user(store: DomainStore, email: str) -> User:
	"""Looks a user up by email; first sight creates them an organization they own."""
	email = email.strip().lower()
	user = store.find(User, email=email)
	if user is not None:
		return user
	local_part = email.split("@")[0]
	org = store.create(Organization(name=f"{local_part}'s Organization", plan_tier="starter"))
	user = store.create(User(email=email, display_name=local_part, org_id=org.id, roles=["owner", "admin"]))
	store.update(Organization, org.id, owner_id=user.id)
	logger.info("Created user %s with organization %s", user.id, org.id)
	return user


@router.post("/login", response_model=LoginResponse)
async def login(req: LoginRequest, store: DomainStore = Depends(get_store)):
	user = find_or_create_user(store, req.email)
	session_id = new_id()
	store.create(AuthSession(id=session_id, user_id=user.id))
	access_token = create_access_token({"sub": user.id, "jti": session_id})
	return LoginResponse(access_token=access_token, user=user)


@router.post("/logout")
async def logout(token: Optional[str] = Depends(optional_oauth2_scheme), store: DomainStore = Depends(get_store)):
	# Always succeeds from the caller's point of view
	payload = _decode(token) if token else None
	if payload and payload.get("jti"):
		try:
			store.delete(AuthSession, payload["jti"])
		except Exception:
			logger.warning("Could not delete session %s", payload["jti"], exc_info=True)
	return {"success": True}


def get_current_user(token: str = Depends(oauth2_scheme), store: DomainStore = Depends(get_store)) -> User:
	credentials_exception = NotAuthenticated("Authentication required")
	payload = _decode(token)
	if payload is None:
		raise credentials_exception
	user_id: str | None = payload.get("sub")
	jti: str | None = payload.get("jti")
	if user_id is None or jti is None:
		raise credentials_exception
	# The session row must still exist; logout deletes it
	session = store.get(AuthSession, jti)
	if session is None or session.user_id != user_id:
		raise credentials_exception
	store.update(AuthSession, jti, last_activity_at=utcnow())
	user = store.get(User, user_id)
	if user is None:
		store.delete(AuthSession, jti)
		raise credentials_exception
	return user


def require_roles(*roles: str):
	def dependency(user: User = Depends(get_current_user)) -> User:
		ensure_roles(user, roles)
		return user
	return dependency


require_admin = require_roles("owner", "admin")


@router.get("/me")
async def me(user: User = Depends(get_current_user), store: DomainStore = Depends(get_store)):
	org = store.get(Organization, user.org_id) if user.org_id else None
	return {"user": user, "org": org}
