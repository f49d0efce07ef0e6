"""Roster update fan-out.

Messages are built inside the request, right after the roster change has
been committed, and delivered later from a background task. Delivery is
best-effort: each recipient is attempted once, bounded by a timeout, and a
failure is logged without affecting anyone else or the original request.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from internmanage.config import settings
from internmanage.logging_config import get_logger
from internmanage.models import ProjectAssignment, RoleKind, User
from internmanage.schemas import Actor
from internmanage.services.roles import role_label

logger = get_logger(__name__)

ROSTER_ORDER = (RoleKind.MENTOR, RoleKind.INTERN, RoleKind.PANELIST)


@dataclass(frozen=True)
class TeamMember:
    name: str
    email: str
    role: RoleKind


@dataclass(frozen=True)
class OutgoingMessage:
    to: str
    subject: str
    body: str


@dataclass
class DeliveryReport:
    sent: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def collect_team(assignment: ProjectAssignment) -> List[TeamMember]:
    """Every assigned member of the project, mentors first."""
    team = []
    for role in ROSTER_ORDER:
        for member in assignment.roster(role):
            user = member.user
            if user is None or not user.email or not user.name:
                continue
            team.append(TeamMember(name=user.name, email=user.email, role=role))
    return team


def format_team(team: Iterable[TeamMember]) -> str:
    lines = [f"{member.name} ({member.email}) - {role_label(member.role)}" for member in team]
    return "\n".join(lines) or "You are the first member of this project team."


def roster_update_body(recipient: str, project_name: str, added_name: str, role: RoleKind, team_details: str) -> str:
    return (
        f"Hello {recipient},\n\n"
        f'There has been an update to the project "{project_name}".\n\n'
        f"{added_name} has been assigned as {role_label(role)}.\n\n"
        f"Current Project Team:\n{team_details}\n\n"
        f"Regards,\nThe {settings.SMTP_FROM_NAME} Team"
    )


class NotificationFanout:
    def __init__(self, mailer, timeout: Optional[float] = None):
        self.mailer = mailer
        self.timeout = timeout or settings.MAIL_TIMEOUT_SECONDS

    def _actor_may_notify(self, db: Session, actor: Actor, company: str) -> bool:
        triggering_user = db.get(User, actor.user_id)
        if triggering_user is None:
            logger.error("Triggering user %s not found, skipping roster notification", actor.user_id)
            return False

        current = Actor(
            user_id=triggering_user.id,
            type=triggering_user.type,
            company=triggering_user.company,
            verified=triggering_user.verified,
            is_approved=triggering_user.is_approved,
        )
        if not current.can_manage_company(company):
            logger.warning(
                "User %s (%s, %s) may not notify members of company %s, skipping",
                triggering_user.email,
                triggering_user.type.value,
                triggering_user.company,
                company,
            )
            return False
        return True

    def roster_update_messages(
        self,
        db: Session,
        assignment: ProjectAssignment,
        added_user: User,
        role: RoleKind,
        actor: Actor,
    ) -> List[OutgoingMessage]:
        """One message per current member announcing ``added_user`` in ``role``."""
        project = assignment.project
        if not self._actor_may_notify(db, actor, project.company):
            return []

        team = collect_team(assignment)
        if added_user.email and added_user.name and all(m.email != added_user.email for m in team):
            team.append(TeamMember(name=added_user.name, email=added_user.email, role=role))

        team_details = format_team(team)
        subject = f"Project Assignment Update: {project.name}"
        return [
            OutgoingMessage(
                to=member.email,
                subject=subject,
                body=roster_update_body(member.name, project.name, added_user.name, role, team_details),
            )
            for member in team
        ]

    def broadcast_messages(self, team: Iterable[TeamMember], subject: str, body: str) -> List[OutgoingMessage]:
        seen = set()
        messages = []
        for member in team:
            if member.email in seen:
                continue
            seen.add(member.email)
            messages.append(OutgoingMessage(to=member.email, subject=subject, body=body))
        return messages

    async def _deliver_one(self, message: OutgoingMessage) -> bool:
        try:
            delivered = await asyncio.wait_for(
                self.mailer.send_email(message.to, message.subject, message.body),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Mail to %s timed out after %ss", message.to, self.timeout)
            return False
        except Exception:
            logger.exception("Mail to %s failed", message.to)
            return False
        return bool(delivered)

    async def deliver(self, messages: List[OutgoingMessage]) -> DeliveryReport:
        """Send every message independently; never raises."""
        report = DeliveryReport()
        if not messages:
            return report

        results = await asyncio.gather(*(self._deliver_one(message) for message in messages))
        for message, delivered in zip(messages, results):
            (report.sent if delivered else report.failed).append(message.to)

        logger.info(
            "Delivered %d of %d notifications (%d failed)",
            len(report.sent),
            len(messages),
            len(report.failed),
        )
        return report
