from datetime import date
from mess.extensions import db
from .base import Money, local_now


class Bill(db.Model):
    __tablename__ = 'bills'

    id = db.Column(db.Integer, primary_key=True)
    teacher_id = db.Column(db.Integer, db.ForeignKey('teachers.id', ondelete='CASCADE'), nullable=False, index=True)
    month = db.Column(db.Integer, nullable=False)  # 1-12
    year = db.Column(db.Integer, nullable=False)

    food_bill = db.Column(Money, nullable=False, default=0)
    water_bill = db.Column(Money, nullable=False, default=0)
    # Carry taken from the previous bill when this one was generated.
    carried_balance = db.Column(Money, nullable=False, default=0)
    total_bill = db.Column(Money, nullable=False, default=0)
    total_meals_consumed = db.Column(db.Integer, nullable=False, default=0)
    # Positive = still owed, negative = credit owed to the teacher.
    unpaid_balance = db.Column(Money, nullable=False, default=0)

    is_paid = db.Column(db.Boolean, default=False, nullable=False, index=True)
    paid_date = db.Column(db.DateTime, nullable=True)
    generated_date = db.Column(db.DateTime, default=local_now)
    generated_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)

    payment_token = db.Column(db.String(32), nullable=True)
    payment_method = db.Column(db.String(50), nullable=True)
    transaction_id = db.Column(db.String(64), nullable=True)

    teacher = db.relationship('Teacher', back_populates='bills')

    __table_args__ = (
        db.UniqueConstraint('teacher_id', 'month', 'year', name='uq_bill_teacher_period'),
    )

    @property
    def period_label(self):
        return date(self.year, self.month, 1).strftime("%B %Y")

    def to_dict(self, include_teacher=False):
        data = {
            "id": self.id,
            "teacher_id": self.teacher_id,
            "month": self.month,
            "year": self.year,
            "period": self.period_label,
            "food_bill": float(self.food_bill),
            "water_bill": float(self.water_bill),
            "carried_balance": float(self.carried_balance),
            "total_bill": float(self.total_bill),
            "total_meals_consumed": self.total_meals_consumed,
            "unpaid_balance": float(self.unpaid_balance),
            "is_paid": self.is_paid,
            "paid_date": self.paid_date.isoformat() if self.paid_date else None,
            "generated_date": self.generated_date.isoformat() if self.generated_date else None,
            "generated_by": self.generated_by,
            "payment_method": self.payment_method,
            "transaction_id": self.transaction_id,
        }
        if include_teacher:
            data["teacher_name"] = self.teacher.full_name if self.teacher else None
        return data
