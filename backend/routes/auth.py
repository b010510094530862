"""
Procurement Workflow Hub - Auth Router

Login endpoint and the bearer-token dependency that turns a request into an
Actor for the workflow engine.
"""

from fastapi import APIRouter, Depends, HTTPException, Header
from pydantic import BaseModel
from datetime import datetime, timezone
from typing import Optional
import jwt as pyjwt
import os

from services.authz import Actor

router = APIRouter(prefix="/auth", tags=["auth"])

# JWT Config
JWT_SECRET = os.environ.get('JWT_SECRET', 'procurement-hub-secret-key')
JWT_ALGORITHM = "HS256"
TOKEN_TTL_SECONDS = 86400

# Local users (will be replaced with Entra ID SSO)
TEST_USERS = {
    "buyer": {
        "password": "buyer",
        "display_name": "Procurement Buyer",
        "email": "buyer@example.com",
        "roles": ["procurement"],
    },
    "viewer": {
        "password": "viewer",
        "display_name": "Read Only",
        "email": "viewer@example.com",
        "roles": ["viewer"],
    },
}


class LoginRequest(BaseModel):
    username: str
    password: str


def create_token(username: str, roles: list, email: Optional[str] = None) -> str:
    payload = {
        "sub": username,
        "roles": roles,
        "email": email,
        "exp": datetime.now(timezone.utc).timestamp() + TOKEN_TTL_SECONDS,
    }
    return pyjwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Actor:
    try:
        payload = pyjwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except pyjwt.PyJWTError as e:
        raise HTTPException(status_code=401, detail=f"Invalid token: {e}")
    return Actor(
        username=payload["sub"],
        roles=tuple(payload.get("roles") or ()),
        email=payload.get("email"),
    )


async def get_current_actor(authorization: Optional[str] = Header(None)) -> Actor:
    """Resolve the Bearer token into an Actor."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")
    return decode_token(authorization.split(" ", 1)[1].strip())


@router.post("/login")
async def login(req: LoginRequest):
    """Authenticate user and return JWT token."""
    user = TEST_USERS.get(req.username)
    if user and req.password == user["password"]:
        token = create_token(req.username, user["roles"], user["email"])
        return {
            "token": token,
            "user": {
                "username": req.username,
                "display_name": user["display_name"],
                "roles": user["roles"],
            }
        }
    raise HTTPException(status_code=401, detail="Invalid credentials")


@router.get("/me")
async def get_me(actor: Actor = Depends(get_current_actor)):
    """Get current user info from the bearer token."""
    return {"username": actor.username, "email": actor.email, "roles": list(actor.roles)}
