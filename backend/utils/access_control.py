from mess.errors import Forbidden, NotFound
from mess.models import Teacher


def get_current_teacher(user):
    """
    Returns the teacher profile linked to a login account.

    - Raises NotFound when the account has no active teacher profile.
    """
    if not user:
        raise ValueError("No user provided")

    teacher = Teacher.query.filter_by(user_id=user.id, is_active=True).first()
    if not teacher:
        raise NotFound("Teacher profile not found")
    return teacher


def ensure_can_view_teacher(user, teacher):
    """
    Admins may view any teacher; a teacher may only view their own profile.
    """
    if user.is_admin:
        return teacher
    if teacher.user_id != user.id:
        raise Forbidden()
    return teacher


def ensure_owns(teacher, record, message="Record not found"):
    # Teachers see other people's records as missing rather than forbidden.
    if record is None or record.teacher_id != teacher.id:
        raise NotFound(message)
    return record
