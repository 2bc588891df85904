import uuid
from typing import Optional

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from . import db, errors, models, security
from .access import Capability, RequestContext, ensure

bearer_scheme = HTTPBearer(auto_error=False)


def get_correlation_id(request: Request, x_correlation_id: Optional[str] = Header(None)):
    # error handlers read it back from request.state
    cid = getattr(request.state, "correlation_id", None) or x_correlation_id or str(uuid.uuid4())
    request.state.correlation_id = cid
    return cid


def get_db():
    s = db.SessionLocal()
    try:
        yield s
    finally:
        s.close()


def get_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db_sess: Session = Depends(get_db),
    cid: str = Depends(get_correlation_id),
) -> RequestContext:
    if credentials is None:
        raise errors.Unauthenticated("Missing bearer token")
    claims = security.decode_access_token(credentials.credentials)
    user = db_sess.get(models.User, claims["sub"])
    if user is None or user.token_version != claims.get("ver"):
        raise errors.Unauthenticated("Token is no longer valid")
    return RequestContext(user_id=user.id, role=user.role, correlation_id=cid)


def require(capability: Capability):
    def capability_dep(ctx: RequestContext = Depends(get_context)) -> RequestContext:
        ensure(ctx, capability)
        return ctx
    return capability_dep
