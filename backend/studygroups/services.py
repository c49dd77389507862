"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and auxiliary logic. Services are intentionally thin: they perform
validation, enforce membership rules and persist aggregates via
repositories. Failures are raised as `studygroups.errors` exceptions.

`GroupService` owns the membership workflow (join, request-to-join,
approve). The other services only ask it whether a user is a member or
an admin of a group, always against freshly loaded rows.
"""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional

import jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from . import models, repositories
from .config import Settings
from .errors import BadRequestError, ForbiddenError, NotFoundError
from .storage import save_upload, validate_upload_filename

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

logger = logging.getLogger("studygroups.services")


def user_brief(user: Optional[models.User], user_id: int, with_email: bool = False) -> dict:
    """Display record for a referenced user; unknown ids keep only the id."""
    if user is None:
        out = {'id': user_id, 'name': None}
        if with_email:
            out['email'] = None
        return out
    out = {'id': user.id, 'name': user.name}
    if with_email:
        out['email'] = user.email
    return out


def user_payload(user: models.User) -> dict:
    """Public representation of a user (never includes the password hash)."""
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'department': user.department,
        'courses': list(user.courses or []),
        'study_preferences': dict(user.study_preferences or {}),
        'created_at': user.created_at,
    }


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session, settings: Settings):
        self.session = session
        self.settings = settings
        self.user_repo = repositories.UserRepository(session)

    def register(self, name: str, email: str, password: str, department: Optional[str] = None) -> models.User:
        """Create a new user with a hashed password.

        Raises `BadRequestError` if the email is already registered.
        """
        if self.user_repo.get_by_email(email):
            raise BadRequestError('User already exists')
        hashed = PWD_CTX.hash(password)
        u = models.User(
            name=name.strip(),
            email=email,
            password_hash=hashed,
            department=department or 'Not specified',
        )
        try:
            user = self.user_repo.create(u)
        except IntegrityError:
            # a concurrent signup claimed the email first
            self.session.rollback()
            raise BadRequestError('User already exists')
        logger.info("user registered id=%s", user.id)
        return user

    def authenticate(self, email: str, password: str) -> Optional[models.User]:
        """Verify credentials and return the matching user.

        Returns `None` if authentication fails.
        """
        user = self.user_repo.get_by_email(email)
        if not user:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        return user

    def issue_token(self, user: models.User) -> str:
        """Return a signed JWT carrying `user_id`, valid for JWT_EXPIRE_HOURS."""
        expire = datetime.now(timezone.utc) + timedelta(hours=self.settings.JWT_EXPIRE_HOURS)
        payload = {"user_id": user.id, "exp": int(expire.timestamp())}
        return jwt.encode(payload, self.settings.JWT_SECRET, algorithm=self.settings.JWT_ALGORITHM)


class GroupService:
    """Group creation, listings and the membership / join-request workflow."""
    def __init__(self, session: Session):
        self.session = session
        self.group_repo = repositories.GroupRepository(session)
        self.user_repo = repositories.UserRepository(session)

    # -- predicates -------------------------------------------------------

    def is_member(self, group_id: int, user_id: int) -> bool:
        return self.group_repo.is_member(group_id, user_id)

    def is_admin(self, group_id: int, user_id: int) -> bool:
        return self.group_repo.is_admin(group_id, user_id)

    def get_or_404(self, group_id: int) -> models.Group:
        group = self.group_repo.get(group_id)
        if not group:
            raise NotFoundError('Group not found')
        return group

    def _require_user(self, user_id: int) -> models.User:
        user = self.user_repo.get(user_id)
        if not user:
            raise NotFoundError('User not found')
        return user

    def require_member(self, group_id: int, user_id: int, message: str) -> models.Group:
        """Load the group and fail unless `user_id` is a member.

        Raises `NotFoundError` for a missing group and `ForbiddenError`
        with `message` for a non-member.
        """
        group = self.get_or_404(group_id)
        if not self.group_repo.is_member(group_id, user_id):
            raise ForbiddenError(message)
        return group

    # -- payloads ---------------------------------------------------------

    def group_payload(self, group: models.Group) -> dict:
        """Group with its sets as lists of user ids."""
        return {
            'id': group.id,
            'name': group.name,
            'subject': group.subject,
            'description': group.description,
            'is_public': group.is_public,
            'created_at': group.created_at,
            'members': self.group_repo.member_ids(group.id),
            'admins': self.group_repo.admin_ids(group.id),
            'join_requests': self.group_repo.request_ids(group.id),
        }

    def populated_payload(self, group: models.Group) -> dict:
        """Group with members/admins resolved to display records."""
        out = self.group_payload(group)
        members, admins = out['members'], out['admins']
        users = self.user_repo.get_many(members + admins)
        out['members'] = [user_brief(users.get(uid), uid, with_email=True) for uid in members]
        out['admins'] = [user_brief(users.get(uid), uid) for uid in admins]
        return out

    # -- operations -------------------------------------------------------

    def create_group(self, user_id: int, name: str, subject: str, description: Optional[str] = None, is_public: bool = False) -> dict:
        """Create a group; the creator becomes its first member and admin."""
        if not name or not name.strip() or not subject or not subject.strip():
            raise BadRequestError('Name and subject are required')
        self._require_user(user_id)
        g = models.Group(
            name=name.strip(),
            subject=subject.strip(),
            description=description,
            is_public=bool(is_public),
        )
        group = self.group_repo.create(g, creator_id=user_id)
        logger.info("group created id=%s by user=%s public=%s", group.id, user_id, group.is_public)
        return self.group_payload(group)

    def list_public(self) -> List[dict]:
        return [self.populated_payload(g) for g in self.group_repo.list_public()]

    def list_for_member(self, user_id: int) -> List[dict]:
        return [self.populated_payload(g) for g in self.group_repo.list_for_member(user_id)]

    def get_group(self, group_id: int, user_id: int) -> dict:
        """Return the group document if `user_id` is a member."""
        group = self.require_member(group_id, user_id, 'You are not a member of this group')
        return self.group_payload(group)

    def join(self, group_id: int, user_id: int) -> dict:
        """Join a public group directly.

        Raises `NotFoundError` for a missing group, `ForbiddenError` for a
        private group and `BadRequestError` if the user is already a member.
        Returns the updated group with populated members/admins.
        """
        group = self.get_or_404(group_id)
        if not group.is_public:
            raise ForbiddenError('Private group - request invitation')
        self._require_user(user_id)
        if self.group_repo.is_member(group_id, user_id):
            raise BadRequestError('Already a member')
        self.group_repo.add_member(group_id, user_id)
        logger.info("user=%s joined group=%s", user_id, group_id)
        return self.populated_payload(group)

    def request_to_join(self, group_id: int, user_id: int) -> dict:
        """File a join request for a private group."""
        group = self.get_or_404(group_id)
        if group.is_public:
            raise BadRequestError('Join directly for public groups')
        self._require_user(user_id)
        if self.group_repo.has_request(group_id, user_id):
            raise BadRequestError('Request already pending')
        if not self.group_repo.add_join_request(group_id, user_id):
            raise BadRequestError('Request already pending')
        logger.info("user=%s requested to join group=%s", user_id, group_id)
        return {'message': 'Join request sent to admin'}

    def pending_requests(self, user_id: int) -> List[dict]:
        """Admin inbox: groups administered by `user_id` with pending requests."""
        out = []
        for group in self.group_repo.list_with_requests_for_admin(user_id):
            payload = self.group_payload(group)
            requesters = payload['join_requests']
            users = self.user_repo.get_many(requesters)
            payload['join_requests'] = [user_brief(users.get(uid), uid, with_email=True) for uid in requesters]
            out.append(payload)
        return out

    def approve(self, group_id: int, target_user_id: int, user_id: int) -> dict:
        """Move `target_user_id` from the join requests into the members set.

        Only admins may approve. The target does not need a pending
        request; approving twice is a no-op.
        """
        self.get_or_404(group_id)
        if not self.group_repo.is_admin(group_id, user_id):
            raise ForbiddenError('Admin access required')
        self._require_user(target_user_id)
        self.group_repo.approve_request(group_id, target_user_id)
        logger.info("admin=%s approved user=%s for group=%s", user_id, target_user_id, group_id)
        return {'message': 'User added to group'}


class DocumentService:
    """Store uploaded files for a group and list them for members."""
    def __init__(self, session: Session, settings: Settings):
        self.session = session
        self.settings = settings
        self.doc_repo = repositories.DocumentRepository(session)
        self.user_repo = repositories.UserRepository(session)
        self.groups = GroupService(session)

    def upload(self, group_id: int, user_id: int, filename: str, content_type: Optional[str], payload: bytes) -> dict:
        """Persist `payload` under the upload directory and record it.

        Membership is checked before the file is validated or written.
        """
        self.groups.require_member(group_id, user_id, 'You must be a member of this group to upload documents')
        try:
            validate_upload_filename(filename)
        except ValueError as e:
            raise BadRequestError(str(e))
        if len(payload) > self.settings.MAX_UPLOAD_BYTES:
            raise BadRequestError('file too large')
        path = save_upload(Path(self.settings.UPLOAD_DIR), filename, payload)
        doc = models.Document(
            group_id=group_id,
            uploader_id=user_id,
            file_name=filename,
            file_path=str(path),
            file_type=content_type or 'application/octet-stream',
            file_size=len(payload),
        )
        doc = self.doc_repo.create(doc)
        logger.info("document=%s uploaded to group=%s by user=%s (%s bytes)", doc.id, group_id, user_id, doc.file_size)
        return {'message': 'Document uploaded successfully', 'document': self._payload(doc, None)}

    def list_for_group(self, group_id: int, user_id: int) -> List[dict]:
        self.groups.require_member(group_id, user_id, 'You must be a member of this group to view documents')
        docs = self.doc_repo.list_for_group(group_id)
        users = self.user_repo.get_many(d.uploader_id for d in docs)
        return [self._payload(d, users.get(d.uploader_id)) for d in docs]

    @staticmethod
    def _payload(doc: models.Document, uploader: Optional[models.User]) -> dict:
        return {
            'id': doc.id,
            'group_id': doc.group_id,
            'uploader': user_brief(uploader, doc.uploader_id),
            'file_name': doc.file_name,
            'file_type': doc.file_type,
            'file_size': doc.file_size,
            'upload_date': doc.upload_date,
        }


class GoalService:
    """Manage personal study goals."""
    UPDATABLE = ('title', 'description', 'deadline', 'completed', 'progress')

    def __init__(self, session: Session):
        self.session = session
        self.goal_repo = repositories.GoalRepository(session)

    def create_goal(self, user_id: int, title: str, description: str, deadline: datetime) -> models.StudyGoal:
        g = models.StudyGoal(user_id=user_id, title=title, description=description, deadline=deadline)
        return self.goal_repo.create(g)

    def list_goals(self, user_id: int) -> List[models.StudyGoal]:
        return self.goal_repo.list_for_user(user_id)

    def update_goal(self, goal_id: int, user_id: int, changes: Dict) -> models.StudyGoal:
        """Apply a partial update to one of the user's goals.

        Keys outside `UPDATABLE` are ignored; `progress` must be 0-100.
        """
        goal = self.goal_repo.get_for_user(goal_id, user_id)
        if not goal:
            raise NotFoundError('Goal not found')
        for key in self.UPDATABLE:
            if key not in changes or changes[key] is None:
                continue
            value = changes[key]
            if key == 'progress' and not 0 <= value <= 100:
                raise BadRequestError('progress must be between 0 and 100')
            setattr(goal, key, value)
        goal.updated_at = datetime.now(timezone.utc)
        return self.goal_repo.save(goal)


class StudySessionService:
    """Schedule study sessions for groups and track attendance."""
    def __init__(self, session: Session):
        self.session = session
        self.sess_repo = repositories.StudySessionRepository(session)
        self.user_repo = repositories.UserRepository(session)
        self.groups = GroupService(session)

    def create_session(self, user_id: int, group_id: int, title: str, date: datetime, duration: int, description: Optional[str] = None) -> dict:
        """Create a session in `group_id`; the creator attends by default."""
        if duration <= 0:
            raise BadRequestError('duration must be positive')
        self.groups.require_member(group_id, user_id, 'You must be a group member to create study sessions')
        s = models.StudySession(
            title=title,
            description=description,
            date=date,
            duration=duration,
            group_id=group_id,
            created_by=user_id,
        )
        s = self.sess_repo.create(s)
        logger.info("study session=%s created in group=%s by user=%s", s.id, group_id, user_id)
        return self.payload(s)

    def list_for_user(self, user_id: int) -> List[dict]:
        return [self.payload(s) for s in self.sess_repo.list_for_member(user_id)]

    def list_for_group(self, group_id: int, user_id: int) -> List[dict]:
        self.groups.require_member(group_id, user_id, 'You must be a member of this group to view study sessions')
        return [self.payload(s) for s in self.sess_repo.list_for_group(group_id)]

    def set_attendance(self, session_id: int, user_id: int, attending: bool) -> dict:
        s = self._get_or_404(session_id)
        if not self.groups.is_member(s.group_id, user_id):
            raise ForbiddenError('You must be a group member to attend this session')
        self.sess_repo.set_attendance(session_id, user_id, attending)
        return self.payload(s)

    def update_status(self, session_id: int, user_id: int, status: str) -> dict:
        """Change the session status; only its creator or a group admin may."""
        if status not in models.SESSION_STATUSES:
            raise BadRequestError(f"status must be one of: {', '.join(models.SESSION_STATUSES)}")
        s = self._get_or_404(session_id)
        if s.created_by != user_id and not self.groups.is_admin(s.group_id, user_id):
            raise ForbiddenError('Only the session creator or a group admin can update the status')
        s.status = status
        s.updated_at = datetime.now(timezone.utc)
        s = self.sess_repo.save(s)
        return self.payload(s)

    def _get_or_404(self, session_id: int) -> models.StudySession:
        s = self.sess_repo.get(session_id)
        if not s:
            raise NotFoundError('Study session not found')
        return s

    def payload(self, s: models.StudySession) -> dict:
        attendees = self.sess_repo.attendee_ids(s.id)
        users = self.user_repo.get_many(attendees + [s.created_by])
        return {
            'id': s.id,
            'title': s.title,
            'description': s.description,
            'date': s.date,
            'duration': s.duration,
            'group_id': s.group_id,
            'status': s.status,
            'created_by': user_brief(users.get(s.created_by), s.created_by),
            'attendees': [user_brief(users.get(uid), uid) for uid in attendees],
            'created_at': s.created_at,
            'updated_at': s.updated_at,
        }


class ProfileService:
    """Read and merge-update the caller's own profile."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def get_profile(self, user_id: int) -> dict:
        user = self.user_repo.get(user_id)
        if not user:
            raise NotFoundError('User not found')
        return user_payload(user)

    def update_profile(self, user_id: int, changes: Dict) -> dict:
        """Merge `changes` into the profile.

        Blank `name`/`email` values are ignored, `department` is applied
        whenever present, `courses` replaces the list and
        `study_preferences` is shallow-merged into the stored mapping.
        """
        user = self.user_repo.get(user_id)
        if not user:
            raise NotFoundError('User not found')
        name = (changes.get('name') or '').strip()
        if name:
            user.name = name
        email = changes.get('email')
        if email and email != user.email:
            other = self.user_repo.get_by_email(email)
            if other and other.id != user.id:
                raise BadRequestError('Email already in use')
            user.email = email
        if changes.get('department') is not None:
            user.department = changes['department']
        if changes.get('courses') is not None:
            user.courses = list(changes['courses'])
        if changes.get('study_preferences'):
            # assign a new dict so the JSON column is marked dirty
            user.study_preferences = {**(user.study_preferences or {}), **changes['study_preferences']}
        user = self.user_repo.save(user)
        return user_payload(user)
