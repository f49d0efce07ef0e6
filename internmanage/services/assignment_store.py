"""Durable storage for project assignments and their rosters.

The store owns the only write path for rosters. Invariants that span
requests (one mentor role per developer, mentor/panelist exclusion, one
volunteer request per role) are enforced by database constraints; ``save``
turns a violated constraint or a stale version into ``ConflictError`` after
rolling the whole write back.
"""
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from internmanage.exceptions import ConflictError, NotFoundError, UnavailableError
from internmanage.logging_config import get_logger
from internmanage.models import (
    AssignmentMember,
    ProjectAssignment,
    RoleKind,
    VolunteerRequest,
    VolunteerStatus,
)

logger = get_logger(__name__)


class AssignmentStore:
    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def guard(self):
        """Translate database timeouts into a retryable ``UnavailableError``."""
        try:
            yield
        except (OperationalError, PoolTimeoutError) as exc:
            self.db.rollback()
            logger.warning("Assignment store unavailable: %s", exc.__class__.__name__, exc_info=True)
            raise UnavailableError() from exc

    def _query(self):
        return self.db.query(ProjectAssignment).options(
            selectinload(ProjectAssignment.project),
            selectinload(ProjectAssignment.members).selectinload(AssignmentMember.user),
            selectinload(ProjectAssignment.volunteers).selectinload(VolunteerRequest.user),
        )

    def get(self, assignment_id: int) -> ProjectAssignment:
        with self.guard():
            assignment = self._query().filter(ProjectAssignment.id == assignment_id).first()
        if assignment is None:
            raise NotFoundError("Assignment not found")
        return assignment

    def find_by_project(self, project_id: int) -> Optional[ProjectAssignment]:
        with self.guard():
            return self._query().filter(ProjectAssignment.project_id == project_id).first()

    def find(
        self,
        company: Optional[str] = None,
        member_id: Optional[int] = None,
        member_roles: Optional[Iterable[RoleKind]] = None,
    ) -> List[ProjectAssignment]:
        query = self._query()
        if company is not None:
            query = query.filter(ProjectAssignment.company == company)
        if member_id is not None:
            criteria = [AssignmentMember.user_id == member_id]
            if member_roles:
                criteria.append(AssignmentMember.role.in_(list(member_roles)))
            query = query.filter(ProjectAssignment.members.any(and_(*criteria)))
        with self.guard():
            return query.order_by(ProjectAssignment.created_at.desc(), ProjectAssignment.id.desc()).all()

    def find_with_pending_volunteers(self, company: Optional[str] = None) -> List[ProjectAssignment]:
        query = self._query().filter(
            ProjectAssignment.volunteers.any(VolunteerRequest.status == VolunteerStatus.PENDING)
        )
        if company is not None:
            query = query.filter(ProjectAssignment.company == company)
        with self.guard():
            return query.order_by(ProjectAssignment.created_at.desc(), ProjectAssignment.id.desc()).all()

    def project_ids_involving(self, user_id: int, role: RoleKind) -> List[int]:
        """Projects where ``user_id`` holds or has requested ``role``."""
        query = self.db.query(ProjectAssignment.project_id).filter(
            ProjectAssignment.members.any(
                (AssignmentMember.user_id == user_id) & (AssignmentMember.role == role)
            )
            | ProjectAssignment.volunteers.any(
                (VolunteerRequest.user_id == user_id) & (VolunteerRequest.role == role)
            )
        )
        with self.guard():
            return [project_id for (project_id,) in query.all()]

    def mentor_assignment_of(self, user_id: int) -> Optional[AssignmentMember]:
        with self.guard():
            return (
                self.db.query(AssignmentMember)
                .filter(AssignmentMember.user_id == user_id, AssignmentMember.role == RoleKind.MENTOR)
                .first()
            )

    def get_or_create(self, project_id: int, company: str) -> ProjectAssignment:
        """Return the project's assignment, creating an empty one if needed.

        Two requests creating the same assignment at once both end up with
        the single row the unique ``project_id`` lets through.
        """
        existing = self.find_by_project(project_id)
        if existing is not None:
            return existing

        assignment = ProjectAssignment(project_id=project_id, company=company)
        try:
            with self.guard(), self.db.begin_nested():
                self.db.add(assignment)
                self.db.flush()
        except IntegrityError:
            logger.info("Assignment for project %s created concurrently, reusing it", project_id)
            existing = self.find_by_project(project_id)
            if existing is None:
                raise ConflictError()
            return existing

        logger.info("Created assignment %s for project %s", assignment.id, project_id)
        return assignment

    def add_member(
        self,
        assignment: ProjectAssignment,
        user_id: int,
        role: RoleKind,
        assigned_by_id: Optional[int],
    ) -> AssignmentMember:
        member = AssignmentMember(
            user_id=user_id,
            role=role,
            assigned_by_id=assigned_by_id,
            assigned_at=datetime.now(timezone.utc),
        )
        assignment.members.append(member)
        return member

    def remove_member(self, assignment: ProjectAssignment, member: AssignmentMember) -> None:
        assignment.members.remove(member)

    def add_volunteer(self, assignment: ProjectAssignment, user_id: int, role: RoleKind) -> VolunteerRequest:
        request = VolunteerRequest(
            user_id=user_id,
            role=role,
            status=VolunteerStatus.PENDING,
            requested_at=datetime.now(timezone.utc),
        )
        assignment.volunteers.append(request)
        return request

    def save(self, assignment: ProjectAssignment) -> ProjectAssignment:
        """Commit the assignment's full roster state in one transaction."""
        project_id = assignment.project_id
        # Touching the row forces a versioned UPDATE even when only child rows changed
        assignment.updated_at = datetime.now(timezone.utc)
        try:
            with self.guard():
                self.db.commit()
        except (IntegrityError, StaleDataError) as exc:
            self.db.rollback()
            logger.warning(
                "Roster write for project %s rejected: %s",
                project_id,
                exc.__class__.__name__,
            )
            raise ConflictError() from exc

        return self._reload(assignment)

    def _reload(self, assignment: ProjectAssignment) -> ProjectAssignment:
        """Load the committed roster, then end the read so no lock outlives the write."""
        with self.guard():
            fresh = (
                self._query()
                .populate_existing()
                .filter(ProjectAssignment.id == assignment.id)
                .one()
            )
            self.db.commit()
        return fresh

    def refresh(self, instance):
        """Reload ``instance`` and end the read transaction it opened."""
        with self.guard():
            self.db.refresh(instance)
            self.db.commit()
        return instance
