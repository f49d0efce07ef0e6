"""Role transitions for project rosters.

Every operation checks, in order: who the actor is, that the targeted
entities exist, that the actor may act on the project's company, and finally
the roster invariants. Nothing is written until all checks have passed, and
the write itself goes through ``AssignmentStore.save`` so that the database
constraints have the last word when two requests race.
"""
import random
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from internmanage.config import settings
from internmanage.exceptions import (
    AlreadyAssignedError,
    AlreadyExistsError,
    DuplicateRequestError,
    ForbiddenError,
    NoCandidatesError,
    NotFoundError,
    ValidationError,
)
from internmanage.logging_config import get_logger
from internmanage.models import (
    Project,
    ProjectAssignment,
    RoleKind,
    User,
    UserType,
    VolunteerRequest,
    VolunteerStatus,
)
from internmanage.schemas import Actor, ProjectCreate
from internmanage.services.assignment_store import AssignmentStore
from internmanage.services.notifications import NotificationFanout, OutgoingMessage, collect_team
from internmanage.services.roles import role_label, rule_for

logger = get_logger(__name__)

MANAGER_TYPES = (UserType.HR, UserType.ADMIN)
VOLUNTEER_TYPES = (UserType.DEVELOPER, UserType.INTERN)


class RoleTransitionEngine:
    """Applies volunteer, review and assignment transitions to project rosters.

    ``schedule`` receives ``(callable, *args)`` and runs it after the response
    is sent (``BackgroundTasks.add_task`` in the API). Without a scheduler or
    a fan-out, roster changes are applied but nobody is notified.
    """

    def __init__(
        self,
        db: Session,
        fanout: Optional[NotificationFanout] = None,
        schedule: Optional[Callable] = None,
        rng: Optional[random.Random] = None,
    ):
        self.db = db
        self.store = AssignmentStore(db)
        self.fanout = fanout
        self.schedule = schedule
        self.rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _require_verified(self, actor: Actor, action: str) -> None:
        if not actor.verified:
            raise ForbiddenError(f"Please verify your email before {action}")

    def _require_manager(self, actor: Actor, action: str) -> None:
        self._require_verified(actor, action)
        if actor.type not in MANAGER_TYPES:
            raise ForbiddenError(f"Forbidden: only HR and admin can {action}")

    def _require_scope(self, actor: Actor, company: str, message: str) -> None:
        if not actor.can_manage_company(company):
            raise ForbiddenError(message)

    def _get_project(self, project_id: int) -> Project:
        with self.store.guard():
            project = self.db.get(Project, project_id)
        if project is None:
            raise NotFoundError("Project not found")
        return project

    def _get_user(self, user_id: int) -> User:
        with self.store.guard():
            user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def _check_assignable(self, assignment: Optional[ProjectAssignment], user_id: int, role: RoleKind) -> None:
        """Raise ``AlreadyAssignedError`` if adding ``user_id`` as ``role`` breaks a roster rule."""
        rule = rule_for(role)
        if assignment is not None:
            if assignment.find_member(user_id, role) is not None:
                raise AlreadyAssignedError(f"{rule.label} is already assigned to this project")
            if rule.excludes is not None and assignment.find_member(user_id, rule.excludes) is not None:
                raise AlreadyAssignedError(
                    f"This developer is already a {role_label(rule.excludes).lower()} for this project "
                    f"and cannot also be assigned as a {rule.label.lower()}."
                )
        if rule.platform_unique:
            held = self.store.mentor_assignment_of(user_id)
            if held is not None and (assignment is None or held.assignment_id != assignment.id):
                raise AlreadyAssignedError(
                    "This developer is already assigned as a mentor to another project "
                    "and can only mentor one project at a time."
                )

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _dispatch(self, messages: List[OutgoingMessage]) -> None:
        if not messages:
            return
        if self.schedule is None or self.fanout is None:
            logger.debug("No notification scheduler configured, dropping %d messages", len(messages))
            return
        self.schedule(self.fanout.deliver, messages)

    def _announce(self, assignment: ProjectAssignment, user_id: int, role: RoleKind, actor: Actor) -> None:
        if self.fanout is None:
            return
        try:
            added_user = self.db.get(User, user_id)
            messages = self.fanout.roster_update_messages(self.db, assignment, added_user, role, actor)
        except Exception:
            # The roster change is already committed
            logger.exception("Could not prepare roster notification for assignment %s", assignment.id)
            return
        self._dispatch(messages)

    # ------------------------------------------------------------------
    # Roster transitions
    # ------------------------------------------------------------------

    def volunteer(self, actor: Actor, project_id: int, role: RoleKind) -> VolunteerRequest:
        rule = rule_for(role)
        self._require_verified(actor, "volunteering for projects")
        if actor.type not in VOLUNTEER_TYPES:
            raise ForbiddenError("Forbidden: only developers and interns can volunteer for projects")
        if actor.type != rule.user_type:
            raise ForbiddenError(f"Forbidden: {actor.type.value}s cannot volunteer as {rule.label.lower()}")
        if not actor.is_approved:
            raise ForbiddenError("You must be approved before volunteering for projects")

        project = self._get_project(project_id)
        if not project.is_approved:
            raise ForbiddenError("Cannot volunteer for unapproved projects")
        if not actor.company or project.company != actor.company:
            raise ForbiddenError("You can only volunteer for projects from your own company")

        assignment = self.store.find_by_project(project.id)
        if assignment is not None:
            existing = assignment.find_volunteer(actor.user_id, role)
            if existing is not None:
                raise DuplicateRequestError(
                    f"You have already volunteered for this project. Status: {existing.status.value}"
                )
            if assignment.find_member(actor.user_id, role) is not None:
                raise AlreadyAssignedError(f"You are already a {rule.label.lower()} for this project")
            if rule.excludes is not None and assignment.find_member(actor.user_id, rule.excludes) is not None:
                raise AlreadyAssignedError(
                    f"You are already a {role_label(rule.excludes).lower()} for this project "
                    f"and cannot also volunteer as a {rule.label.lower()}."
                )

        assignment = self.store.get_or_create(project.id, project.company)
        request = self.store.add_volunteer(assignment, actor.user_id, role)
        self.store.save(assignment)

        logger.info("User %s volunteered as %s for project %s", actor.user_id, rule.label, project.id)
        return request

    def review(
        self,
        actor: Actor,
        assignment_id: int,
        user_id: int,
        role: RoleKind,
        decision: VolunteerStatus,
    ) -> VolunteerRequest:
        self._require_manager(actor, "review volunteer requests")

        assignment = self.store.get(assignment_id)
        self._require_scope(actor, assignment.company, "You can only review requests from your own company")

        request = assignment.find_volunteer(user_id, role)
        if request is None or request.status.is_terminal:
            raise NotFoundError("Volunteer request not found")
        if not request.status.can_transition_to(decision):
            raise ValidationError("Status must be either approved or rejected")

        if decision == VolunteerStatus.APPROVED:
            self._check_assignable(assignment, user_id, role)
            self.store.add_member(assignment, user_id, role, actor.user_id)

        request.status = decision
        request.reviewed_by_id = actor.user_id
        request.reviewed_at = datetime.now(timezone.utc)
        self.store.save(assignment)

        logger.info(
            "Volunteer request of user %s as %s on assignment %s %s by %s",
            user_id,
            role_label(role),
            assignment.id,
            decision.value,
            actor.user_id,
        )
        if decision == VolunteerStatus.APPROVED:
            self._announce(assignment, user_id, role, actor)
        return request

    def assign_direct(self, actor: Actor, project_id: int, user_id: int, role: RoleKind) -> ProjectAssignment:
        rule = rule_for(role)
        self._require_manager(actor, "assign users to projects")

        project = self._get_project(project_id)
        self._require_scope(actor, project.company, "You can only assign users to projects from your own company")
        user = self._get_user(user_id)
        if actor.is_hr and user.company != actor.company:
            raise ForbiddenError("You can only assign users from your own company")
        if user.type != rule.user_type:
            raise ValidationError(f"User is not a {rule.user_type.value}")
        if not project.is_approved:
            raise ForbiddenError("Cannot assign users to unapproved projects")

        self._check_assignable(self.store.find_by_project(project.id), user.id, role)

        assignment = self.store.get_or_create(project.id, project.company)
        self.store.add_member(assignment, user.id, role, actor.user_id)
        self.store.save(assignment)

        logger.info("User %s assigned as %s to project %s by %s", user.id, rule.label, project.id, actor.user_id)
        self._announce(assignment, user.id, role, actor)
        return assignment

    def assign_random_panelist(self, actor: Actor, project_id: int) -> Tuple[ProjectAssignment, User]:
        """Assign a uniformly chosen eligible developer as panelist."""
        self._require_manager(actor, "assign panelists")

        project = self._get_project(project_id)
        self._require_scope(actor, project.company, "You can only assign developers to projects from your own company")
        if not project.is_approved:
            raise ForbiddenError("Cannot assign users to unapproved projects")

        assignment = self.store.find_by_project(project.id)
        excluded = set()
        if assignment is not None:
            excluded = {m.user_id for m in assignment.members if m.role in (RoleKind.MENTOR, RoleKind.PANELIST)}

        query = self.db.query(User).filter(User.type == UserType.DEVELOPER, User.company == project.company)
        if excluded:
            query = query.filter(User.id.notin_(excluded))
        with self.store.guard():
            candidates = query.order_by(User.id).all()
        if not candidates:
            raise NoCandidatesError("No available developers to assign as a panelist.")

        chosen = self.rng.choice(candidates)
        self._check_assignable(assignment, chosen.id, RoleKind.PANELIST)

        assignment = self.store.get_or_create(project.id, project.company)
        self.store.add_member(assignment, chosen.id, RoleKind.PANELIST, actor.user_id)
        self.store.save(assignment)

        logger.info("Randomly assigned developer %s as panelist to project %s", chosen.id, project.id)
        self._announce(assignment, chosen.id, RoleKind.PANELIST, actor)
        return assignment, chosen

    def remove_from_roster(self, actor: Actor, assignment_id: int, user_id: int, role: RoleKind) -> ProjectAssignment:
        self._require_manager(actor, "remove users from projects")

        assignment = self.store.get(assignment_id)
        self._require_scope(actor, assignment.company, "You can only remove users from your own company projects")

        member = assignment.find_member(user_id, role)
        if member is None:
            raise NotFoundError(f"{role_label(role)} is not assigned to this project")

        self.store.remove_member(assignment, member)
        self.store.save(assignment)

        logger.info("User %s removed as %s from assignment %s", user_id, role_label(role), assignment.id)
        return assignment

    def initialize(self, actor: Actor, project_id: int) -> ProjectAssignment:
        self._require_manager(actor, "initialize project assignments")

        project = self._get_project(project_id)
        self._require_scope(
            actor, project.company, "You can only initialize assignments for projects from your own company"
        )
        if not project.is_approved:
            raise ForbiddenError("Cannot initialize assignment for unapproved projects")
        if self.store.find_by_project(project.id) is not None:
            raise AlreadyExistsError("Project assignment already exists for this project")

        assignment = self.store.get_or_create(project.id, project.company)
        return self.store.save(assignment)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(self, actor: Actor, payload: ProjectCreate) -> Project:
        """HR and admin projects are approved at once, developer ones are suggestions."""
        self._require_verified(actor, "adding projects")
        if actor.type not in (UserType.HR, UserType.ADMIN, UserType.DEVELOPER):
            raise ForbiddenError("Forbidden: only HR, admin and developers can add projects")

        company = payload.company or actor.company
        if not company:
            raise ValidationError("Company is required")
        if not actor.is_admin and (not actor.is_approved or company != actor.company):
            raise ForbiddenError("Forbidden: you can only add projects for your own company")

        suggested = actor.type == UserType.DEVELOPER
        project = Project(
            name=payload.name,
            company=company,
            description=payload.description,
            skill_requirement=list(payload.skill_requirement),
            estimated_time_to_complete=payload.estimated_time_to_complete,
            suggested_by=actor.email if suggested else None,
            is_approved=not suggested,
        )
        if not suggested:
            project.approved_by_id = actor.user_id
            project.approved_at = datetime.now(timezone.utc)

        with self.store.guard():
            self.db.add(project)
            self.db.commit()
        self.store.refresh(project)

        logger.info("Project %s created by %s (approved=%s)", project.id, actor.user_id, project.is_approved)
        return project

    def approve_project(self, actor: Actor, project_id: int) -> Project:
        """Approve a suggested project and seed its suggester as mentor."""
        self._require_manager(actor, "approve projects")

        project = self._get_project(project_id)
        self._require_scope(actor, project.company, "You can only approve projects from your own company")
        if project.is_approved:
            raise ValidationError("Project is already approved")

        mentor = None
        if project.suggested_by:
            with self.store.guard():
                mentor = self.db.query(User).filter(User.email == project.suggested_by).first()
            if mentor is None or mentor.type != UserType.DEVELOPER:
                logger.warning(
                    "Suggester %s of project %s is not a developer, approving without a mentor",
                    project.suggested_by,
                    project.id,
                )
                mentor = None
            else:
                self._check_assignable(self.store.find_by_project(project.id), mentor.id, RoleKind.MENTOR)

        project.is_approved = True
        project.approved_by_id = actor.user_id
        project.approved_at = datetime.now(timezone.utc)

        assignment = self.store.get_or_create(project.id, project.company)
        if mentor is not None:
            self.store.add_member(assignment, mentor.id, RoleKind.MENTOR, actor.user_id)
        self.store.save(assignment)
        self.store.refresh(project)

        logger.info("Project %s approved by %s", project.id, actor.user_id)
        if mentor is not None:
            self._announce(assignment, mentor.id, RoleKind.MENTOR, actor)
        return project

    def pending_projects(self, actor: Actor) -> List[Project]:
        self._require_manager(actor, "view pending projects")
        query = self.db.query(Project).filter(Project.is_approved.is_(False))
        if actor.is_hr:
            if not actor.company:
                raise ForbiddenError("Company information is required to view pending projects")
            query = query.filter(Project.company == actor.company)
        with self.store.guard():
            return query.order_by(Project.created_at.desc(), Project.id.desc()).all()

    def available_projects(self, actor: Actor) -> List[Project]:
        """Approved projects of the actor's company they have not joined or volunteered for."""
        if actor.type not in VOLUNTEER_TYPES or not actor.verified:
            raise ForbiddenError("Forbidden: Only verified interns and developers can view available projects.")
        if not actor.company:
            raise ValidationError("You must be associated with a company to see projects.")

        role = RoleKind.MENTOR if actor.type == UserType.DEVELOPER else RoleKind.INTERN
        excluded = self.store.project_ids_involving(actor.user_id, role)

        query = self.db.query(Project).filter(Project.company == actor.company, Project.is_approved.is_(True))
        if excluded:
            query = query.filter(Project.id.notin_(excluded))
        with self.store.guard():
            return query.order_by(Project.created_at.desc(), Project.id.desc()).all()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_assignments(self, actor: Actor) -> List[ProjectAssignment]:
        self._require_verified(actor, "viewing project assignments")
        if actor.is_admin:
            return self.store.find()
        if not actor.company:
            raise ForbiddenError("Company information is required")
        return self.store.find(company=actor.company)

    def _visible(self, actor: Actor, assignment: ProjectAssignment) -> ProjectAssignment:
        if not actor.is_admin and assignment.company != actor.company:
            raise ForbiddenError("You can only view assignments from your own company")
        return assignment

    def get_by_project(self, actor: Actor, project_id: int) -> ProjectAssignment:
        self._require_verified(actor, "viewing project assignments")
        assignment = self.store.find_by_project(project_id)
        if assignment is None:
            raise NotFoundError("No assignments found for this project")
        return self._visible(actor, assignment)

    def get_by_id(self, actor: Actor, assignment_id: int) -> ProjectAssignment:
        self._require_verified(actor, "viewing project assignments")
        return self._visible(actor, self.store.get(assignment_id))

    def pending_volunteers(self, actor: Actor) -> List[ProjectAssignment]:
        self._require_manager(actor, "view volunteer requests")
        if actor.is_admin:
            return self.store.find_with_pending_volunteers()
        if not actor.company:
            raise ForbiddenError("Company information is required")
        return self.store.find_with_pending_volunteers(company=actor.company)

    def _member_view(self, actor: Actor, member_id: int, roles) -> List[ProjectAssignment]:
        if member_id != actor.user_id and actor.type not in MANAGER_TYPES:
            raise ForbiddenError("Forbidden: You can only view your own project assignments.")
        assignments = self.store.find(member_id=member_id, member_roles=roles)
        if actor.is_hr:
            assignments = [a for a in assignments if a.company == actor.company]
        return assignments

    def assignments_for_developer(self, actor: Actor, developer_id: int) -> List[Tuple[ProjectAssignment, List[str]]]:
        """Assignments where the developer mentors or sits on the panel, with those role labels."""
        self._require_verified(actor, "viewing project assignments")
        roles = (RoleKind.MENTOR, RoleKind.PANELIST)
        return [
            (assignment, [role_label(role) for role in roles if assignment.find_member(developer_id, role)])
            for assignment in self._member_view(actor, developer_id, roles)
        ]

    def assignments_for_intern(self, actor: Actor, intern_id: int) -> List[ProjectAssignment]:
        self._require_verified(actor, "viewing project assignments")
        return self._member_view(actor, intern_id, (RoleKind.INTERN,))

    def unassigned_users(self, actor: Actor, project_id: int, role: RoleKind) -> List[User]:
        """Users of the project's company who could still be added as ``role``."""
        self._require_manager(actor, "view unassigned users")
        rule = rule_for(role)

        project = self._get_project(project_id)
        self._require_scope(actor, project.company, "You can only view users from your own company")

        assignment = self.store.find_by_project(project.id)
        taken = {member.user_id for member in assignment.roster(role)} if assignment else set()

        query = self.db.query(User).filter(User.type == rule.user_type, User.company == project.company)
        if taken:
            query = query.filter(User.id.notin_(taken))
        with self.store.guard():
            return query.order_by(User.name, User.id).all()

    # ------------------------------------------------------------------
    # Manual notifications
    # ------------------------------------------------------------------

    def notify_project_members(
        self, actor: Actor, project_id: int, subject: Optional[str], message: str
    ) -> int:
        """Queue ``message`` for every member of one project; returns the recipient count."""
        self._require_manager(actor, "notify project members")

        assignment = self.store.find_by_project(project_id)
        if assignment is None:
            raise NotFoundError("Project assignment not found.")
        self._require_scope(actor, assignment.company, "You can only notify members of your own company projects")

        if self.fanout is None:
            return 0
        messages = self.fanout.broadcast_messages(
            collect_team(assignment),
            subject or f"A message regarding project: {assignment.project.name}",
            message,
        )
        self._dispatch(messages)
        logger.info("Queued %d notifications for project %s", len(messages), project_id)
        return len(messages)

    def notify_all_project_members(self, actor: Actor, subject: Optional[str], message: str) -> int:
        """Queue ``message`` once for every member of every project."""
        if not actor.is_admin:
            raise ForbiddenError("Forbidden")

        team = []
        for assignment in self.store.find():
            team.extend(collect_team(assignment))

        if self.fanout is None:
            return 0
        messages = self.fanout.broadcast_messages(
            team,
            subject or f"Important Announcement for all {settings.SMTP_FROM_NAME} Projects",
            message,
        )
        self._dispatch(messages)
        logger.info("Queued %d notifications for all project members", len(messages))
        return len(messages)
