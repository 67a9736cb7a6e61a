import logging
import re

from mess.extensions import db
from mess.errors import Conflict, NotFound, ValidationError
from mess.models import (
    AttendanceDispute, AttendanceRecord, Bill, Role, Teacher, TokenBlocklist, User, TEACHER_ROLE,
)
from utils.db import atomic
from utils.forms import as_bool

logger = logging.getLogger(__name__)

USERNAME_PATTERN = re.compile(r'^[\w.@+-]{3,}$')
EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
PROFILE_FIELDS = ("full_name", "email", "phone_number", "department")


def _clean_profile(data, partial=False):
    cleaned = {}
    for field in PROFILE_FIELDS:
        if field not in data and partial:
            continue
        value = (data.get(field) or "").strip()
        if not value:
            raise ValidationError(f"{field} is required")
        cleaned[field] = value

    if "email" in cleaned and not EMAIL_PATTERN.match(cleaned["email"]):
        raise ValidationError("Invalid email address")
    if "full_name" in cleaned and len(cleaned["full_name"]) > 100:
        raise ValidationError("full_name must be at most 100 characters")
    if "phone_number" in cleaned and len(cleaned["phone_number"]) > 20:
        raise ValidationError("phone_number must be at most 20 characters")
    return cleaned


def _ensure_unique_email(email, teacher_id=None):
    existing = Teacher.query.filter_by(email=email).first()
    if existing is not None and existing.id != teacher_id:
        raise Conflict("Email already exists")


def get_teacher(teacher_id):
    teacher = db.session.get(Teacher, teacher_id)
    if teacher is None:
        raise NotFound("Teacher not found")
    return teacher


def create_teacher(data):
    """
    Creates a teacher profile together with its login account.

    The account must change its password on first login.
    """
    profile = _clean_profile(data)
    username = (data.get("username") or "").strip()
    password = data.get("password") or ""
    if not username or not password:
        raise ValidationError("username and password are required")
    if not USERNAME_PATTERN.match(username):
        raise ValidationError("Invalid username format")
    if len(password) < 6:
        raise ValidationError("Password must be at least 6 characters")
    is_active = as_bool(data.get("is_active"), "is_active", default=True)

    with atomic():
        if User.query.filter_by(username=username).first():
            raise Conflict("Username already exists")
        _ensure_unique_email(profile["email"])

        role = Role.query.filter_by(name=TEACHER_ROLE).first()
        if role is None:
            role = Role(name=TEACHER_ROLE)
            db.session.add(role)
            db.session.flush()

        user = User(username=username, role_id=role.id, must_change_password=True, is_active=True)
        user.set_password(password)
        db.session.add(user)
        db.session.flush()

        teacher = Teacher(user_id=user.id, is_active=is_active, **profile)
        db.session.add(teacher)

    logger.info("Created teacher %s (%s) with account %s", teacher.id, teacher.full_name, username)
    return teacher


def update_teacher(teacher_id, data):
    profile = _clean_profile(data, partial=True)
    with atomic():
        teacher = get_teacher(teacher_id)
        if "email" in profile:
            _ensure_unique_email(profile["email"], teacher_id=teacher.id)
        for field, value in profile.items():
            setattr(teacher, field, value)
        if "is_active" in data:
            teacher.is_active = as_bool(data["is_active"], "is_active")
            if teacher.user is not None:
                teacher.user.is_active = teacher.is_active
    return teacher


def delete_teacher(teacher_id):
    """
    Hard-deletes a teacher with its disputes, attendance, bills and login account.
    """
    with atomic():
        teacher = get_teacher(teacher_id)
        name, user_id = teacher.full_name, teacher.user_id

        AttendanceDispute.query.filter_by(teacher_id=teacher.id).delete(synchronize_session=False)
        AttendanceRecord.query.filter_by(teacher_id=teacher.id).delete(synchronize_session=False)
        Bill.query.filter_by(teacher_id=teacher.id).delete(synchronize_session=False)
        db.session.expire(teacher, ["attendance_records", "bills", "disputes"])
        db.session.delete(teacher)
        db.session.flush()

        if user_id is not None:
            TokenBlocklist.query.filter_by(user_id=user_id).delete(synchronize_session=False)
            user = db.session.get(User, user_id)
            if user is not None:
                db.session.delete(user)

    logger.info("Deleted teacher %s (%s) and all related records", teacher_id, name)
    return name
