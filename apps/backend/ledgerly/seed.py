from __future__ import annotations

from sqlalchemy.orm import Session

from .core.database import Base, SessionLocal, engine
from .core.logging_config import get_logger
from .models import Category, TxnType, User

logger = get_logger(__name__)

DEMO_EMAIL = "demo@example.com"

DEFAULT_CATEGORIES: tuple[dict, ...] = (
    # Income
    {"name": "Salary", "type": TxnType.INCOME, "color": "#10B981", "icon": "Banknote"},
    {"name": "Freelance", "type": TxnType.INCOME, "color": "#3B82F6", "icon": "Laptop"},
    {"name": "Investment", "type": TxnType.INCOME, "color": "#8B5CF6", "icon": "TrendingUp"},
    # Bills and services
    {"name": "Bills & Utilities", "type": TxnType.EXPENSE, "color": "#6366F1", "icon": "Receipt"},
    {"name": "Rent & Housing", "type": TxnType.EXPENSE, "color": "#F59E0B", "icon": "Home"},
    {"name": "Transportation", "type": TxnType.EXPENSE, "color": "#EF4444", "icon": "Car"},
    {"name": "Healthcare", "type": TxnType.EXPENSE, "color": "#EC4899", "icon": "Heart"},
    {"name": "Insurance", "type": TxnType.EXPENSE, "color": "#14B8A6", "icon": "Shield"},
    {"name": "Subscriptions", "type": TxnType.EXPENSE, "color": "#8B5CF6", "icon": "Repeat"},
    {"name": "Entertainment", "type": TxnType.EXPENSE, "color": "#F97316", "icon": "Film"},
    {"name": "Donations", "type": TxnType.EXPENSE, "color": "#10B981", "icon": "Gift"},
    # Goods
    {"name": "Food & Dining", "type": TxnType.EXPENSE, "color": "#F59E0B", "icon": "UtensilsCrossed"},
    {"name": "Shopping", "type": TxnType.EXPENSE, "color": "#EC4899", "icon": "ShoppingBag"},
)


def seed() -> None:
    Base.metadata.create_all(bind=engine)
    db: Session = SessionLocal()
    try:
        user = db.query(User).filter_by(email=DEMO_EMAIL).first()
        if not user:
            user = User(email=DEMO_EMAIL, full_name="Demo", is_active=True)
            db.add(user)
            db.flush()
            logger.info("Created demo user", extra={"user_id": user.id})

        if not db.query(Category).filter_by(user_id=user.id).first():
            for category in DEFAULT_CATEGORIES:
                db.add(
                    Category(
                        user_id=user.id,
                        description=f"Default {category['type'].value} category",
                        **category,
                    )
                )

        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
