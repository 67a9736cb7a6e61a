from mess.extensions import db
from .base import Money, local_now

# The single live configuration row always uses this key.
SINGLETON_ID = 1


class BillingConfiguration(db.Model):
    __tablename__ = 'billing_configuration'

    id = db.Column(db.Integer, primary_key=True, default=SINGLETON_ID)
    monthly_water_bill_total = db.Column(Money, nullable=False)
    breakfast_rate = db.Column(Money, nullable=False)
    lunch_rate = db.Column(Money, nullable=False)
    dinner_rate = db.Column(Money, nullable=False)
    last_updated = db.Column(db.DateTime, default=local_now)
    updated_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)

    def to_dict(self):
        return {
            "monthly_water_bill_total": float(self.monthly_water_bill_total),
            "breakfast_rate": float(self.breakfast_rate),
            "lunch_rate": float(self.lunch_rate),
            "dinner_rate": float(self.dinner_rate),
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "updated_by": self.updated_by,
        }
