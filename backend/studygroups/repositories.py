"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
groups, documents, goals, study sessions). Repositories return SQLModel
objects and perform commits/refreshes where appropriate.

The set-valued fields (group members, admins, join requests and session
attendees) are link tables. `_add_unique` and `_remove_if_present` stage
the two primitive set operations without committing, so callers can
combine several of them into one transaction.
"""

from typing import Dict, Iterable, List, Optional
from sqlmodel import Session, select, col
from sqlalchemy.exc import IntegrityError
from . import models


def _add_unique(session: Session, link_model, **keys) -> bool:
    """Stage an insert of `link_model(**keys)` unless the row exists.

    Returns True when a row was staged.
    """
    stmt = select(link_model)
    for name, value in keys.items():
        stmt = stmt.where(getattr(link_model, name) == value)
    if session.exec(stmt).first() is not None:
        return False
    session.add(link_model(**keys))
    return True


def _remove_if_present(session: Session, link_model, **keys) -> None:
    """Stage a delete of any `link_model` row matching `keys`."""
    stmt = select(link_model)
    for name, value in keys.items():
        stmt = stmt.where(getattr(link_model, name) == value)
    for row in session.exec(stmt).all():
        session.delete(row)


def _ids(session: Session, link_model, owner_field: str, owner_id: int) -> List[int]:
    stmt = (
        select(link_model.user_id)
        .where(getattr(link_model, owner_field) == owner_id)
        .order_by(link_model.id)
    )
    return list(session.exec(stmt).all())


def _exists(session: Session, link_model, **keys) -> bool:
    stmt = select(link_model.id)
    for name, value in keys.items():
        stmt = stmt.where(getattr(link_model, name) == value)
    return session.exec(stmt).first() is not None


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def save(self, user: models.User) -> models.User:
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return user

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by email or `None` if not found."""
        stmt = select(models.User).where(models.User.email == email)
        return self.session.exec(stmt).first()

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)

    def get_many(self, user_ids: Iterable[int]) -> Dict[int, models.User]:
        """Return a mapping of id -> `User` for the ids that exist."""
        ids = set(user_ids)
        if not ids:
            return {}
        stmt = select(models.User).where(col(models.User.id).in_(ids))
        return {u.id: u for u in self.session.exec(stmt).all()}


class GroupRepository:
    """Groups and their member/admin/join-request sets."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, group: models.Group, creator_id: int) -> models.Group:
        """Create a group with `creator_id` as its first member and admin."""
        self.session.add(group)
        self.session.flush()
        self.session.add(models.GroupMember(group_id=group.id, user_id=creator_id))
        self.session.add(models.GroupAdmin(group_id=group.id, user_id=creator_id))
        self.session.commit()
        self.session.refresh(group)
        return group

    def get(self, group_id: int) -> Optional[models.Group]:
        """Fetch a group by id."""
        return self.session.get(models.Group, group_id)

    def list_public(self) -> List[models.Group]:
        stmt = select(models.Group).where(models.Group.is_public == True).order_by(models.Group.id)  # noqa: E712
        return self.session.exec(stmt).all()

    def list_for_member(self, user_id: int) -> List[models.Group]:
        """Return the groups whose `members` set contains `user_id`."""
        stmt = (
            select(models.Group)
            .join(models.GroupMember, models.GroupMember.group_id == models.Group.id)
            .where(models.GroupMember.user_id == user_id)
            .order_by(models.Group.id)
        )
        return self.session.exec(stmt).all()

    def list_with_requests_for_admin(self, user_id: int) -> List[models.Group]:
        """Return groups administered by `user_id` that have pending requests."""
        pending = select(models.JoinRequest.group_id)
        stmt = (
            select(models.Group)
            .join(models.GroupAdmin, models.GroupAdmin.group_id == models.Group.id)
            .where(models.GroupAdmin.user_id == user_id, col(models.Group.id).in_(pending))
            .order_by(models.Group.id)
        )
        return self.session.exec(stmt).all()

    def member_ids(self, group_id: int) -> List[int]:
        return _ids(self.session, models.GroupMember, "group_id", group_id)

    def admin_ids(self, group_id: int) -> List[int]:
        return _ids(self.session, models.GroupAdmin, "group_id", group_id)

    def request_ids(self, group_id: int) -> List[int]:
        return _ids(self.session, models.JoinRequest, "group_id", group_id)

    def is_member(self, group_id: int, user_id: int) -> bool:
        return _exists(self.session, models.GroupMember, group_id=group_id, user_id=user_id)

    def is_admin(self, group_id: int, user_id: int) -> bool:
        return _exists(self.session, models.GroupAdmin, group_id=group_id, user_id=user_id)

    def has_request(self, group_id: int, user_id: int) -> bool:
        return _exists(self.session, models.JoinRequest, group_id=group_id, user_id=user_id)

    def add_member(self, group_id: int, user_id: int) -> bool:
        """Add `user_id` to the members set (idempotent).

        A unique-constraint conflict means a concurrent request added the
        same member first; that is reported as "nothing added".
        """
        added = _add_unique(self.session, models.GroupMember, group_id=group_id, user_id=user_id)
        if not added:
            return False
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            return False
        return True

    def add_join_request(self, group_id: int, user_id: int) -> bool:
        """Append `user_id` to the join-request set.

        Returns False if a request for the same user already exists,
        including one inserted concurrently.
        """
        self.session.add(models.JoinRequest(group_id=group_id, user_id=user_id))
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            return False
        return True

    def approve_request(self, group_id: int, user_id: int) -> None:
        """Move `user_id` from join requests to members in one transaction."""
        try:
            _add_unique(self.session, models.GroupMember, group_id=group_id, user_id=user_id)
            _remove_if_present(self.session, models.JoinRequest, group_id=group_id, user_id=user_id)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise


class DocumentRepository:
    """Persist and list uploaded document metadata."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, document: models.Document) -> models.Document:
        self.session.add(document)
        self.session.commit()
        self.session.refresh(document)
        return document

    def list_for_group(self, group_id: int) -> List[models.Document]:
        """List documents of `group_id`, oldest upload first."""
        stmt = select(models.Document).where(models.Document.group_id == group_id).order_by(models.Document.id)
        return self.session.exec(stmt).all()


class GoalRepository:
    """Repository for study goal records."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, goal: models.StudyGoal) -> models.StudyGoal:
        self.session.add(goal)
        self.session.commit()
        self.session.refresh(goal)
        return goal

    def save(self, goal: models.StudyGoal) -> models.StudyGoal:
        self.session.add(goal)
        self.session.commit()
        self.session.refresh(goal)
        return goal

    def list_for_user(self, user_id: int) -> List[models.StudyGoal]:
        """Return all goals of `user_id` ordered by deadline."""
        stmt = select(models.StudyGoal).where(models.StudyGoal.user_id == user_id).order_by(models.StudyGoal.deadline)
        return self.session.exec(stmt).all()

    def get_for_user(self, goal_id: int, user_id: int) -> Optional[models.StudyGoal]:
        """Fetch a goal only if it belongs to `user_id`."""
        stmt = select(models.StudyGoal).where(models.StudyGoal.id == goal_id, models.StudyGoal.user_id == user_id)
        return self.session.exec(stmt).first()


class StudySessionRepository:
    """Study sessions and their attendee sets."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, study_session: models.StudySession) -> models.StudySession:
        """Create a session with its creator as the first attendee."""
        self.session.add(study_session)
        self.session.flush()
        self.session.add(models.SessionAttendee(session_id=study_session.id, user_id=study_session.created_by))
        self.session.commit()
        self.session.refresh(study_session)
        return study_session

    def save(self, study_session: models.StudySession) -> models.StudySession:
        self.session.add(study_session)
        self.session.commit()
        self.session.refresh(study_session)
        return study_session

    def get(self, session_id: int) -> Optional[models.StudySession]:
        return self.session.get(models.StudySession, session_id)

    def list_for_group(self, group_id: int) -> List[models.StudySession]:
        stmt = select(models.StudySession).where(models.StudySession.group_id == group_id).order_by(models.StudySession.date)
        return self.session.exec(stmt).all()

    def list_for_member(self, user_id: int) -> List[models.StudySession]:
        """Return sessions from every group that `user_id` is a member of."""
        groups = select(models.GroupMember.group_id).where(models.GroupMember.user_id == user_id)
        stmt = select(models.StudySession).where(col(models.StudySession.group_id).in_(groups)).order_by(models.StudySession.date)
        return self.session.exec(stmt).all()

    def attendee_ids(self, session_id: int) -> List[int]:
        return _ids(self.session, models.SessionAttendee, "session_id", session_id)

    def set_attendance(self, session_id: int, user_id: int, attending: bool) -> None:
        """Add or remove `user_id` from the attendee set of `session_id`."""
        try:
            if attending:
                _add_unique(self.session, models.SessionAttendee, session_id=session_id, user_id=user_id)
            else:
                _remove_if_present(self.session, models.SessionAttendee, session_id=session_id, user_id=user_id)
            self.session.commit()
        except IntegrityError:
            # a concurrent request already added this attendee
            self.session.rollback()
