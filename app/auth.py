import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError
from jose import jwt as jose_jwt
from sqlalchemy.orm import Session

from . import config
from .database import get_db
from .models import TeamMember

logger = logging.getLogger(__name__)

# auto_error is off so the auth cookie can be used as a fallback
security = HTTPBearer(auto_error=False)

ALGORITHM = "HS256"


def decode_access_token(token: str) -> dict:
    """
    Verify a Supabase access token and return its claims.

    Raises HTTPException(401) for malformed, expired or badly signed tokens.
    """
    if not config.SUPABASE_JWT_SECRET:
        logger.error("❌ SUPABASE_JWT_SECRET not configured")
        raise HTTPException(status_code=500, detail="Authentication not configured")

    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received, length: {len(token)}")
        raise HTTPException(status_code=401, detail="Invalid authentication")

    try:
        return jose_jwt.decode(
            token,
            config.SUPABASE_JWT_SECRET,
            algorithms=[ALGORITHM],
            audience=config.SUPABASE_JWT_AUDIENCE,
        )
    except ExpiredSignatureError as e:
        logger.info("ℹ️ Expired token presented")
        raise HTTPException(
            status_code=401,
            detail="Invalid authentication",
            headers={"X-Token-Expired": "true"},
        ) from e
    except JWTError as e:
        logger.warning(f"⚠️ JWT verification failed: {e}")
        raise HTTPException(status_code=401, detail="Invalid authentication") from e


def names_from_claims(claims: dict) -> tuple[Optional[str], Optional[str], Optional[str]]:
    metadata = claims.get("user_metadata") or {}
    first_name = metadata.get("first_name")
    last_name = metadata.get("last_name")
    full_name = metadata.get("full_name") or metadata.get("name")

    if full_name and not (first_name or last_name):
        parts = full_name.split(" ", 1)
        first_name = parts[0]
        last_name = parts[1] if len(parts) > 1 else None

    display_name = full_name or " ".join(p for p in (first_name, last_name) if p) or None
    return first_name, last_name, display_name


def get_token_claims(request: Request) -> dict:
    """Claims of the verified token stored by get_current_user"""
    return getattr(request.state, "auth_claims", {}) or {}


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> TeamMember:
    """Resolve the calling team member from a Bearer token or the auth cookie"""
    token = credentials.credentials if credentials else request.cookies.get(config.AUTH_COOKIE_NAME)

    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")

    claims = decode_access_token(token)
    auth_user_id = claims.get("sub")
    email = (claims.get("email") or "").lower()

    if not auth_user_id:
        logger.error(f"❌ Token missing sub claim. Available claims: {list(claims.keys())}")
        raise HTTPException(status_code=401, detail="Invalid authentication")

    request.state.auth_claims = claims

    member = db.query(TeamMember).filter(TeamMember.auth_user_id == auth_user_id).first()
    if member:
        return member

    provider = (claims.get("app_metadata") or {}).get("provider") or "email"
    is_professional = bool((claims.get("user_metadata") or {}).get("is_professional"))

    # Team members created by an owner before their first sign-in are linked by email
    if email:
        existing = (
            db.query(TeamMember)
            .filter(TeamMember.email == email, TeamMember.auth_user_id.is_(None))
            .first()
        )
        if existing:
            logger.info(f"🔄 Linking team member {existing.id} to auth user {auth_user_id}")
            existing.auth_user_id = auth_user_id
            existing.auth_provider = provider
            try:
                db.commit()
                db.refresh(existing)
            except Exception as e:
                db.rollback()
                logger.error(f"❌ Failed to link team member: {e}")
                raise HTTPException(status_code=500, detail="Failed to link account") from e
            return existing

    first_name, last_name, display_name = names_from_claims(claims)
    logger.info(f"🆕 Creating team member for auth user: {email}")
    member = TeamMember(
        auth_user_id=auth_user_id,
        email=email,
        first_name=first_name,
        last_name=last_name,
        display_name=display_name,
        avatar_url=(claims.get("user_metadata") or {}).get("avatar_url"),
        auth_provider=provider,
        is_professional=is_professional,
    )
    db.add(member)
    try:
        db.commit()
        db.refresh(member)
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to create team member: {e}")
        raise HTTPException(status_code=500, detail="Failed to create account") from e

    return member
