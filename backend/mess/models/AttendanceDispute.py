from mess.extensions import db
from .base import DisputeStatus, local_now


class AttendanceDispute(db.Model):
    __tablename__ = 'attendance_disputes'

    id = db.Column(db.Integer, primary_key=True)
    # Nulled once the disputed attendance is removed; attendance_date keeps the history.
    attendance_id = db.Column(
        db.Integer, db.ForeignKey('attendance_records.id', ondelete='SET NULL'), nullable=True, index=True
    )
    attendance_date = db.Column(db.Date, nullable=False)
    teacher_id = db.Column(db.Integer, db.ForeignKey('teachers.id', ondelete='CASCADE'), nullable=False, index=True)
    reason = db.Column(db.String(500), nullable=False)
    status = db.Column(db.Enum(DisputeStatus), nullable=False, default=DisputeStatus.pending, index=True)
    reported_date = db.Column(db.DateTime, default=local_now, nullable=False)
    resolved_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    resolved_date = db.Column(db.DateTime, nullable=True)
    admin_notes = db.Column(db.String(1000), nullable=True)

    attendance = db.relationship('AttendanceRecord')
    teacher = db.relationship('Teacher', back_populates='disputes')
    resolver = db.relationship('User', foreign_keys=[resolved_by])

    def to_dict(self):
        attendance = self.attendance
        return {
            "id": self.id,
            "attendance_id": self.attendance_id,
            "attendance_date": self.attendance_date.isoformat(),
            "teacher_id": self.teacher_id,
            "teacher_name": self.teacher.full_name if self.teacher else None,
            "reason": self.reason,
            "status": self.status.value,
            "reported_date": self.reported_date.isoformat() if self.reported_date else None,
            "resolved_by": self.resolver.username if self.resolver else None,
            "resolved_date": self.resolved_date.isoformat() if self.resolved_date else None,
            "admin_notes": self.admin_notes,
            "attendance": attendance.to_dict() if attendance else None,
        }
