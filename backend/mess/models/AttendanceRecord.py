from mess.extensions import db
from .base import local_now


class AttendanceRecord(db.Model):
    __tablename__ = 'attendance_records'

    id = db.Column(db.Integer, primary_key=True)
    teacher_id = db.Column(db.Integer, db.ForeignKey('teachers.id', ondelete='CASCADE'), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    breakfast_taken = db.Column(db.Boolean, default=False, nullable=False)
    lunch_taken = db.Column(db.Boolean, default=False, nullable=False)
    dinner_taken = db.Column(db.Boolean, default=False, nullable=False)
    remarks = db.Column(db.String(255), nullable=True)
    recorded_at = db.Column(db.DateTime, default=local_now)
    recorded_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    # Bill these meals are already charged on; NULL until the period is billed.
    bill_id = db.Column(db.Integer, db.ForeignKey('bills.id', ondelete='SET NULL'), nullable=True, index=True)

    teacher = db.relationship('Teacher', back_populates='attendance_records')

    __table_args__ = (
        db.UniqueConstraint('teacher_id', 'date', name='uq_attendance_teacher_date'),
    )

    @property
    def meal_count(self):
        return int(self.breakfast_taken) + int(self.lunch_taken) + int(self.dinner_taken)

    def to_dict(self, include_teacher=False):
        data = {
            "id": self.id,
            "teacher_id": self.teacher_id,
            "date": self.date.isoformat(),
            "breakfast_taken": self.breakfast_taken,
            "lunch_taken": self.lunch_taken,
            "dinner_taken": self.dinner_taken,
            "remarks": self.remarks,
            "recorded_at": self.recorded_at.isoformat() if self.recorded_at else None,
            "recorded_by": self.recorded_by,
            "bill_id": self.bill_id,
        }
        if include_teacher:
            data["teacher_name"] = self.teacher.full_name if self.teacher else "Unknown"
        return data
