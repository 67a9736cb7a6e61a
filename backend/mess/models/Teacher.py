from mess.extensions import db
from .base import local_now


class Teacher(db.Model):
    __tablename__ = 'teachers'

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    phone_number = db.Column(db.String(20), nullable=False)
    department = db.Column(db.String(100), nullable=False)
    joining_date = db.Column(db.DateTime, default=local_now)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, unique=True)

    user = db.relationship('User', back_populates='teacher')
    attendance_records = db.relationship(
        'AttendanceRecord', back_populates='teacher', lazy=True,
        cascade="all, delete-orphan", passive_deletes=True
    )
    bills = db.relationship(
        'Bill', back_populates='teacher', lazy=True,
        cascade="all, delete-orphan", passive_deletes=True
    )
    disputes = db.relationship(
        'AttendanceDispute', back_populates='teacher', lazy=True,
        cascade="all, delete-orphan", passive_deletes=True
    )

    def to_dict(self):
        return {
            "id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "phone_number": self.phone_number,
            "department": self.department,
            "joining_date": self.joining_date.isoformat() if self.joining_date else None,
            "is_active": self.is_active,
            "username": self.user.username if self.user else None,
        }
