import random

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from conftest import COMPANY, OTHER_COMPANY, actor_for, make_project, make_user
from internmanage.exceptions import (
    AlreadyAssignedError,
    AlreadyExistsError,
    ConflictError,
    DuplicateRequestError,
    ForbiddenError,
    NoCandidatesError,
    NotFoundError,
    UnavailableError,
    ValidationError,
)
from internmanage.models import RoleKind, UserType, VolunteerStatus
from internmanage.schemas import ProjectCreate
from internmanage.services.assignment_store import AssignmentStore
from internmanage.services.role_transitions import RoleTransitionEngine


@pytest.fixture
def engine(db_session: Session) -> RoleTransitionEngine:
    return RoleTransitionEngine(db_session)


@pytest.fixture
def hr(db_session: Session):
    return make_user(db_session, "Hana HR", UserType.HR)


@pytest.fixture
def developer(db_session: Session):
    return make_user(db_session, "Dev One", UserType.DEVELOPER)


@pytest.fixture
def intern(db_session: Session):
    return make_user(db_session, "Ivy Intern", UserType.INTERN)


def test_developer_can_mentor_only_one_project(db_session, engine, hr, developer):
    first = make_project(db_session, "Billing")
    second = make_project(db_session, "Payroll")

    engine.assign_direct(actor_for(hr), first.id, developer.id, RoleKind.MENTOR)

    with pytest.raises(AlreadyAssignedError):
        engine.assign_direct(actor_for(hr), second.id, developer.id, RoleKind.MENTOR)

    store = AssignmentStore(db_session)
    assert [m.user_id for m in store.find_by_project(first.id).assigned_developers] == [developer.id]
    assert store.find_by_project(second.id) is None


def test_mentor_approval_rechecks_other_projects(db_session, engine, hr, developer):
    first = make_project(db_session, "Billing")
    second = make_project(db_session, "Payroll")

    request = engine.volunteer(actor_for(developer), second.id, RoleKind.MENTOR)
    engine.assign_direct(actor_for(hr), first.id, developer.id, RoleKind.MENTOR)

    with pytest.raises(AlreadyAssignedError):
        engine.review(actor_for(hr), request.assignment_id, developer.id, RoleKind.MENTOR, VolunteerStatus.APPROVED)

    assignment = AssignmentStore(db_session).get(request.assignment_id)
    assert assignment.assigned_developers == []
    assert assignment.volunteer_developers[0].status == VolunteerStatus.PENDING


def test_second_mentor_row_is_rejected_at_write_time(db_session, engine, hr, developer):
    first = make_project(db_session, "Billing")
    second = make_project(db_session, "Payroll")
    engine.assign_direct(actor_for(hr), first.id, developer.id, RoleKind.MENTOR)

    store = AssignmentStore(db_session)
    other = store.save(store.get_or_create(second.id, COMPANY))
    other_id = other.id

    # Bypasses the engine's checks, as a concurrent request would
    store.add_member(other, developer.id, RoleKind.MENTOR, hr.id)
    with pytest.raises(ConflictError):
        store.save(other)

    assert store.get(other_id).assigned_developers == []
    assert len(store.find_by_project(first.id).assigned_developers) == 1


def test_mentor_and_panelist_are_exclusive_on_a_project(db_session, engine, hr, developer):
    project = make_project(db_session)
    engine.assign_direct(actor_for(hr), project.id, developer.id, RoleKind.MENTOR)

    with pytest.raises(AlreadyAssignedError):
        engine.assign_direct(actor_for(hr), project.id, developer.id, RoleKind.PANELIST)
    with pytest.raises(AlreadyAssignedError):
        engine.volunteer(actor_for(developer), project.id, RoleKind.PANELIST)

    assignment = AssignmentStore(db_session).find_by_project(project.id)
    assert assignment.panelists == []
    assert assignment.volunteer_panelists == []


def test_panelist_cannot_volunteer_as_mentor(db_session, engine, hr, developer):
    project = make_project(db_session)
    engine.assign_direct(actor_for(hr), project.id, developer.id, RoleKind.PANELIST)

    with pytest.raises(AlreadyAssignedError):
        engine.volunteer(actor_for(developer), project.id, RoleKind.MENTOR)


def test_panelist_row_for_mentor_is_rejected_at_write_time(db_session, engine, hr, developer):
    project = make_project(db_session)
    assignment = engine.assign_direct(actor_for(hr), project.id, developer.id, RoleKind.MENTOR)

    store = AssignmentStore(db_session)
    store.add_member(assignment, developer.id, RoleKind.PANELIST, hr.id)
    with pytest.raises(ConflictError):
        store.save(assignment)

    assert store.find_by_project(project.id).panelists == []


def test_duplicate_volunteer_request_is_rejected(db_session, engine, hr, intern):
    project = make_project(db_session)
    request = engine.volunteer(actor_for(intern), project.id, RoleKind.INTERN)
    assert request.status == VolunteerStatus.PENDING

    with pytest.raises(DuplicateRequestError):
        engine.volunteer(actor_for(intern), project.id, RoleKind.INTERN)

    engine.review(actor_for(hr), request.assignment_id, intern.id, RoleKind.INTERN, VolunteerStatus.APPROVED)
    with pytest.raises(DuplicateRequestError):
        engine.volunteer(actor_for(intern), project.id, RoleKind.INTERN)

    assignment = AssignmentStore(db_session).find_by_project(project.id)
    assert len(assignment.volunteer_interns) == 1
    assert [m.user_id for m in assignment.assigned_interns] == [intern.id]


def test_rejected_volunteer_cannot_volunteer_again(db_session, engine, hr, intern):
    project = make_project(db_session)
    request = engine.volunteer(actor_for(intern), project.id, RoleKind.INTERN)
    engine.review(actor_for(hr), request.assignment_id, intern.id, RoleKind.INTERN, VolunteerStatus.REJECTED)

    with pytest.raises(DuplicateRequestError):
        engine.volunteer(actor_for(intern), project.id, RoleKind.INTERN)


def test_review_stamps_reviewer(db_session, engine, hr, intern):
    project = make_project(db_session)
    request = engine.volunteer(actor_for(intern), project.id, RoleKind.INTERN)

    reviewed = engine.review(
        actor_for(hr), request.assignment_id, intern.id, RoleKind.INTERN, VolunteerStatus.REJECTED
    )

    assert reviewed.status == VolunteerStatus.REJECTED
    assert reviewed.reviewed_by_id == hr.id
    assert reviewed.reviewed_at is not None
    assert AssignmentStore(db_session).find_by_project(project.id).assigned_interns == []


def test_review_requires_pending_request(db_session, engine, hr, intern):
    project = make_project(db_session)
    request = engine.volunteer(actor_for(intern), project.id, RoleKind.INTERN)
    engine.review(actor_for(hr), request.assignment_id, intern.id, RoleKind.INTERN, VolunteerStatus.APPROVED)

    with pytest.raises(NotFoundError):
        engine.review(actor_for(hr), request.assignment_id, intern.id, RoleKind.INTERN, VolunteerStatus.REJECTED)
    with pytest.raises(NotFoundError):
        engine.review(actor_for(hr), request.assignment_id, intern.id, RoleKind.PANELIST, VolunteerStatus.APPROVED)


def test_review_cannot_move_back_to_pending(db_session, engine, hr, intern):
    project = make_project(db_session)
    request = engine.volunteer(actor_for(intern), project.id, RoleKind.INTERN)

    with pytest.raises(ValidationError):
        engine.review(actor_for(hr), request.assignment_id, intern.id, RoleKind.INTERN, VolunteerStatus.PENDING)


def test_volunteer_checks_actor_and_project(db_session, engine, developer, intern):
    unapproved = make_project(db_session, "Draft", is_approved=False)
    foreign = make_project(db_session, "Foreign", company=OTHER_COMPANY)
    unverified = make_user(db_session, "New Intern", UserType.INTERN, verified=False)

    with pytest.raises(ForbiddenError):
        engine.volunteer(actor_for(unverified), foreign.id, RoleKind.INTERN)
    with pytest.raises(ForbiddenError):
        engine.volunteer(actor_for(intern), unapproved.id, RoleKind.INTERN)
    with pytest.raises(ForbiddenError):
        engine.volunteer(actor_for(intern), foreign.id, RoleKind.INTERN)
    with pytest.raises(ForbiddenError):
        engine.volunteer(actor_for(intern), unapproved.id, RoleKind.MENTOR)
    with pytest.raises(NotFoundError):
        engine.volunteer(actor_for(developer), 9999, RoleKind.MENTOR)


def test_hr_of_another_company_is_always_forbidden(db_session, engine, hr, developer, intern):
    outsider = make_user(db_session, "Olga HR", UserType.HR, company=OTHER_COMPANY)
    project = make_project(db_session)
    request = engine.volunteer(actor_for(intern), project.id, RoleKind.INTERN)
    assignment_id = request.assignment_id
    pending = make_project(db_session, "Suggested", is_approved=False, suggested_by=developer.email)
    foreign = actor_for(outsider)

    with pytest.raises(ForbiddenError):
        engine.review(foreign, assignment_id, intern.id, RoleKind.INTERN, VolunteerStatus.APPROVED)
    with pytest.raises(ForbiddenError):
        engine.review(foreign, assignment_id, developer.id, RoleKind.MENTOR, VolunteerStatus.APPROVED)
    with pytest.raises(ForbiddenError):
        engine.assign_direct(foreign, project.id, developer.id, RoleKind.MENTOR)
    with pytest.raises(ForbiddenError):
        engine.assign_direct(foreign, project.id, 9999, RoleKind.MENTOR)
    with pytest.raises(ForbiddenError):
        engine.remove_from_roster(foreign, assignment_id, intern.id, RoleKind.INTERN)
    with pytest.raises(ForbiddenError):
        engine.assign_random_panelist(foreign, project.id)
    with pytest.raises(ForbiddenError):
        engine.initialize(foreign, project.id)
    with pytest.raises(ForbiddenError):
        engine.approve_project(foreign, pending.id)

    assignment = AssignmentStore(db_session).get(assignment_id)
    assert assignment.members == []
    assert assignment.volunteer_interns[0].status == VolunteerStatus.PENDING


def test_only_managers_assign(db_session, engine, developer, intern):
    project = make_project(db_session)

    with pytest.raises(ForbiddenError):
        engine.assign_direct(actor_for(developer), project.id, intern.id, RoleKind.INTERN)


def test_admin_is_not_company_scoped(db_session, engine, developer):
    admin = make_user(db_session, "Ada Admin", UserType.ADMIN, company=None)
    project = make_project(db_session, company=COMPANY)

    assignment = engine.assign_direct(actor_for(admin), project.id, developer.id, RoleKind.MENTOR)

    assert assignment.assigned_developers[0].assigned_by_id == admin.id


def test_assign_direct_validates_user(db_session, engine, hr, intern):
    project = make_project(db_session)
    stranger = make_user(db_session, "Sam Dev", UserType.DEVELOPER, company=OTHER_COMPANY)

    with pytest.raises(NotFoundError):
        engine.assign_direct(actor_for(hr), project.id, 9999, RoleKind.INTERN)
    with pytest.raises(ValidationError):
        engine.assign_direct(actor_for(hr), project.id, intern.id, RoleKind.MENTOR)
    with pytest.raises(ForbiddenError):
        engine.assign_direct(actor_for(hr), project.id, stranger.id, RoleKind.PANELIST)


def test_assign_direct_rejects_existing_member(db_session, engine, hr, intern):
    project = make_project(db_session)
    engine.assign_direct(actor_for(hr), project.id, intern.id, RoleKind.INTERN)

    with pytest.raises(AlreadyAssignedError):
        engine.assign_direct(actor_for(hr), project.id, intern.id, RoleKind.INTERN)


def test_remove_from_roster_keeps_volunteer_history(db_session, engine, hr, intern):
    project = make_project(db_session)
    request = engine.volunteer(actor_for(intern), project.id, RoleKind.INTERN)
    engine.review(actor_for(hr), request.assignment_id, intern.id, RoleKind.INTERN, VolunteerStatus.APPROVED)

    assignment = engine.remove_from_roster(actor_for(hr), request.assignment_id, intern.id, RoleKind.INTERN)

    assert assignment.assigned_interns == []
    assert [v.user_id for v in assignment.volunteer_interns] == [intern.id]

    with pytest.raises(NotFoundError):
        engine.remove_from_roster(actor_for(hr), request.assignment_id, intern.id, RoleKind.INTERN)


def test_initialize_refuses_existing_assignment(db_session, engine, hr):
    project = make_project(db_session)

    assignment = engine.initialize(actor_for(hr), project.id)
    assert assignment.project_id == project.id
    assert assignment.members == []

    with pytest.raises(AlreadyExistsError):
        engine.initialize(actor_for(hr), project.id)


def test_initialize_requires_approved_project(db_session, engine, hr):
    project = make_project(db_session, is_approved=False)

    with pytest.raises(ForbiddenError):
        engine.initialize(actor_for(hr), project.id)


def test_approving_suggested_project_seeds_mentor(db_session, engine, hr, developer):
    suggestion = engine.create_project(
        actor_for(developer),
        ProjectCreate(
            name="Search Revamp",
            company=COMPANY,
            description="Rebuild product search on top of the new index",
            skill_requirement=["python"],
            estimated_time_to_complete="2 months",
        ),
    )
    assert suggestion.is_approved is False
    assert suggestion.suggested_by == developer.email
    assert engine.pending_projects(actor_for(hr))[0].id == suggestion.id

    project = engine.approve_project(actor_for(hr), suggestion.id)

    assert project.is_approved is True
    assert project.approved_by_id == hr.id
    assignment = AssignmentStore(db_session).find_by_project(project.id)
    mentors = assignment.assigned_developers
    assert [m.user_id for m in mentors] == [developer.id]
    assert mentors[0].assigned_by_id == hr.id

    with pytest.raises(ValidationError):
        engine.approve_project(actor_for(hr), project.id)


def test_approval_fails_when_suggester_already_mentors(db_session, engine, hr, developer):
    elsewhere = make_project(db_session, "Billing")
    engine.assign_direct(actor_for(hr), elsewhere.id, developer.id, RoleKind.MENTOR)
    suggestion = make_project(db_session, "Suggested", is_approved=False, suggested_by=developer.email)

    with pytest.raises(AlreadyAssignedError):
        engine.approve_project(actor_for(hr), suggestion.id)

    db_session.refresh(suggestion)
    assert suggestion.is_approved is False
    assert AssignmentStore(db_session).find_by_project(suggestion.id) is None


def test_hr_project_is_approved_on_creation(db_session, engine, hr):
    project = engine.create_project(
        actor_for(hr),
        ProjectCreate(
            name="Data Platform",
            description="Consolidate the reporting pipelines",
            skill_requirement=["sql"],
            estimated_time_to_complete="6 months",
        ),
    )

    assert project.is_approved is True
    assert project.company == COMPANY
    assert project.suggested_by is None


def test_random_panelist_picks_the_only_candidate(db_session, hr, developer):
    project = make_project(db_session)
    mentor = make_user(db_session, "Mia Mentor", UserType.DEVELOPER)
    make_user(db_session, "Far Dev", UserType.DEVELOPER, company=OTHER_COMPANY)
    RoleTransitionEngine(db_session).assign_direct(actor_for(hr), project.id, mentor.id, RoleKind.MENTOR)

    _, chosen = RoleTransitionEngine(db_session, rng=random.Random(7)).assign_random_panelist(
        actor_for(hr), project.id
    )

    assert chosen.id == developer.id
    panelists = AssignmentStore(db_session).find_by_project(project.id).panelists
    assert [p.user_id for p in panelists] == [developer.id]


@pytest.mark.parametrize("seed", [0, 1, 2, 3, 42])
def test_random_panelist_choice_is_among_eligible(db_session, hr, seed):
    project = make_project(db_session)
    candidates = {make_user(db_session, f"Dev {i}", UserType.DEVELOPER).id for i in range(3)}

    _, chosen = RoleTransitionEngine(db_session, rng=random.Random(seed)).assign_random_panelist(
        actor_for(hr), project.id
    )

    assert chosen.id in candidates


def test_random_panelist_without_candidates(db_session, engine, hr, developer):
    project = make_project(db_session)
    engine.assign_direct(actor_for(hr), project.id, developer.id, RoleKind.PANELIST)

    with pytest.raises(NoCandidatesError):
        engine.assign_random_panelist(actor_for(hr), project.id)


def test_available_projects_exclude_involvement(db_session, engine, intern):
    joined = make_project(db_session, "Joined")
    open_project = make_project(db_session, "Open")
    make_project(db_session, "Draft", is_approved=False)
    make_project(db_session, "Foreign", company=OTHER_COMPANY)
    engine.volunteer(actor_for(intern), joined.id, RoleKind.INTERN)

    available = engine.available_projects(actor_for(intern))

    assert [p.id for p in available] == [open_project.id]


def test_developer_view_lists_roles(db_session, engine, hr, developer):
    mentored = make_project(db_session, "Mentored")
    judged = make_project(db_session, "Judged")
    engine.assign_direct(actor_for(hr), mentored.id, developer.id, RoleKind.MENTOR)
    engine.assign_direct(actor_for(hr), judged.id, developer.id, RoleKind.PANELIST)

    entries = engine.assignments_for_developer(actor_for(developer), developer.id)

    roles = {assignment.project_id: labels for assignment, labels in entries}
    assert roles == {mentored.id: ["Mentor"], judged.id: ["Panelist"]}


def test_intern_may_only_view_own_assignments(db_session, engine, intern):
    other = make_user(db_session, "Ian Intern", UserType.INTERN)

    with pytest.raises(ForbiddenError):
        engine.assignments_for_intern(actor_for(intern), other.id)
    assert engine.assignments_for_intern(actor_for(intern), intern.id) == []


def test_unassigned_users_skip_roster(db_session, engine, hr, intern):
    project = make_project(db_session)
    waiting = make_user(db_session, "Wes Intern", UserType.INTERN)
    make_user(db_session, "Far Intern", UserType.INTERN, company=OTHER_COMPANY)
    engine.assign_direct(actor_for(hr), project.id, intern.id, RoleKind.INTERN)

    users = engine.unassigned_users(actor_for(hr), project.id, RoleKind.INTERN)

    assert [u.id for u in users] == [waiting.id]


def test_pending_volunteers_scoped_to_company(db_session, engine, hr, intern):
    mine = make_project(db_session, "Mine")
    theirs = make_project(db_session, "Theirs", company=OTHER_COMPANY)
    foreign_intern = make_user(db_session, "Fay Intern", UserType.INTERN, company=OTHER_COMPANY)
    engine.volunteer(actor_for(intern), mine.id, RoleKind.INTERN)
    engine.volunteer(actor_for(foreign_intern), theirs.id, RoleKind.INTERN)

    assignments = engine.pending_volunteers(actor_for(hr))

    assert [a.project_id for a in assignments] == [mine.id]


def test_store_timeouts_surface_as_unavailable(db_session):
    store = AssignmentStore(db_session)

    with pytest.raises(UnavailableError) as exc:
        with store.guard():
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    assert exc.value.status_code == 503
    assert exc.value.retryable is True


def test_stale_roster_write_is_a_conflict(db_session, hr, intern):
    project = make_project(db_session)
    store = AssignmentStore(db_session)
    assignment = store.save(store.get_or_create(project.id, COMPANY))
    stale_version = assignment.version_id

    # Another writer commits a roster change first
    db_session.execute(
        text("UPDATE project_assignments SET version_id = version_id + 1 WHERE id = :id"),
        {"id": assignment.id},
    )
    db_session.commit()

    store.add_member(assignment, intern.id, RoleKind.INTERN, hr.id)
    with pytest.raises(ConflictError):
        store.save(assignment)

    reloaded = store.find_by_project(project.id)
    assert reloaded.assigned_interns == []
    assert reloaded.version_id == stale_version + 1


def test_save_releases_read_transaction(db_session, engine, hr, intern):
    project = make_project(db_session)

    assignment = engine.assign_direct(actor_for(hr), project.id, intern.id, RoleKind.INTERN)

    assert not db_session.in_transaction()
    assert [m.user.id for m in assignment.assigned_interns] == [intern.id]
