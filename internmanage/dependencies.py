"""FastAPI dependencies shared by the v1 routers."""
from typing import Optional

from fastapi import BackgroundTasks, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from internmanage.database import get_db
from internmanage.exceptions import UnauthorizedError
from internmanage.logging_config import set_actor_id
from internmanage.schemas import Actor
from internmanage.security import decode_token
from internmanage.services.email_service import email_service
from internmanage.services.notifications import NotificationFanout
from internmanage.services.role_transitions import RoleTransitionEngine

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Actor:
    """Resolve the caller from the bearer token claims."""
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError()

    claims = decode_token(credentials.credentials)
    try:
        actor = Actor(
            user_id=claims["userId"],
            type=claims["type"],
            company=claims.get("company"),
            email=claims.get("email"),
            verified=claims.get("verified", False),
            is_approved=claims.get("isApproved", False),
        )
    except (KeyError, PydanticValidationError) as exc:
        raise UnauthorizedError("Unauthorized: Invalid token") from exc

    set_actor_id(str(actor.user_id))
    return actor


def get_mailer():
    return email_service


def get_fanout(mailer=Depends(get_mailer)) -> NotificationFanout:
    return NotificationFanout(mailer)


def get_engine(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    fanout: NotificationFanout = Depends(get_fanout),
) -> RoleTransitionEngine:
    return RoleTransitionEngine(db, fanout=fanout, schedule=background_tasks.add_task)
