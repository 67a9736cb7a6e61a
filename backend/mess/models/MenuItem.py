from mess.extensions import db
from .base import Money, MealType, DayOfWeek, local_now


class MenuItem(db.Model):
    __tablename__ = 'menu_items'

    id = db.Column(db.Integer, primary_key=True)
    item_name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=True)
    meal_type = db.Column(db.Enum(MealType), nullable=False, index=True)
    day_of_week = db.Column(db.Enum(DayOfWeek), nullable=False, index=True)
    rate_per_serving = db.Column(Money, nullable=False, default=0)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=local_now)

    def to_dict(self):
        return {
            "id": self.id,
            "item_name": self.item_name,
            "description": self.description,
            "meal_type": self.meal_type.value,
            "day_of_week": self.day_of_week.value,
            "rate_per_serving": float(self.rate_per_serving),
        }
