import os
import logging
from decimal import Decimal

from mess.extensions import db
from mess.models import (
    BillingConfiguration, DayOfWeek, MealType, MenuItem, Role, User, ADMIN_ROLE, TEACHER_ROLE, SINGLETON_ID,
)
from utils.clock import get_clock

logger = logging.getLogger(__name__)

DEFAULT_RATES = {
    "monthly_water_bill_total": Decimal("5000"),
    "breakfast_rate": Decimal("30"),
    "lunch_rate": Decimal("60"),
    "dinner_rate": Decimal("50"),
}

# (day, breakfast, lunch, dinner); each meal is (name, description, rate)
WEEKLY_MENU = [
    (DayOfWeek.monday,
     ("Halwa Puri", "Traditional halwa with crispy puris", 80),
     ("Chicken Biryani", "Fragrant rice with spiced chicken", 150),
     ("Daal Chawal", "Lentils with steamed rice", 100)),
    (DayOfWeek.tuesday,
     ("Paratha with Omelette", "Flaky paratha with egg omelette", 70),
     ("Nihari", "Slow-cooked beef stew with naan", 180),
     ("Karahi Chicken", "Spicy chicken in wok-style curry", 160)),
    (DayOfWeek.wednesday,
     ("Chana Chaat", "Chickpea salad with spices", 60),
     ("Mutton Pulao", "Aromatic rice with tender mutton", 170),
     ("Aloo Gosht", "Potato and meat curry", 140)),
    (DayOfWeek.thursday,
     ("Aloo Paratha", "Stuffed flatbread with spiced potatoes", 75),
     ("Fish Curry", "Spicy fish in tomato gravy", 160),
     ("Palak Paneer", "Spinach with cottage cheese", 120)),
    (DayOfWeek.friday,
     ("Paya", "Traditional trotters soup", 90),
     ("Beef Pulao", "Fragrant rice with beef", 165),
     ("Chicken Korma", "Creamy chicken curry", 150)),
    (DayOfWeek.saturday,
     ("Nihari", "Spicy slow-cooked beef with naan", 120),
     ("Kabuli Pulao", "Afghan-style rice with meat and carrots", 175),
     ("Mix Vegetable", "Seasonal vegetables curry", 110)),
    (DayOfWeek.sunday,
     ("Haleem", "Rich meat and lentil porridge", 100),
     ("Chicken Karahi", "Wok-style chicken with tomatoes", 160),
     ("Daal Mash", "Urad lentils with spices", 95)),
]


def seed_roles():
    for role_name in (ADMIN_ROLE, TEACHER_ROLE):
        if not Role.query.filter_by(name=role_name).first():
            db.session.add(Role(name=role_name))
    db.session.commit()


def seed_admin(username="admin", password=None):
    password = password or os.getenv("ADMIN_PASSWORD", "admin123")
    admin = User.query.filter_by(username=username).first()
    if admin:
        return admin

    role = Role.query.filter_by(name=ADMIN_ROLE).first()
    admin = User(username=username, role_id=role.id, must_change_password=False, is_active=True)
    admin.set_password(password)
    db.session.add(admin)
    db.session.commit()
    logger.info("Created admin account '%s'", username)
    return admin


def seed_billing_configuration():
    if db.session.get(BillingConfiguration, SINGLETON_ID) is None:
        db.session.add(BillingConfiguration(id=SINGLETON_ID, last_updated=get_clock().now(), **DEFAULT_RATES))
        db.session.commit()


def seed_menu():
    if MenuItem.query.first():
        return
    meal_types = (MealType.breakfast, MealType.lunch, MealType.dinner)
    for day, *meals in WEEKLY_MENU:
        for meal_type, (name, description, rate) in zip(meal_types, meals):
            db.session.add(MenuItem(
                item_name=name,
                description=description,
                meal_type=meal_type,
                day_of_week=day,
                rate_per_serving=Decimal(rate),
                is_active=True,
            ))
    db.session.commit()


def seed_data(with_menu=True):
    """Idempotent: existing rows are left untouched."""
    seed_roles()
    admin = seed_admin()
    seed_billing_configuration()
    if with_menu:
        seed_menu()
    return admin
