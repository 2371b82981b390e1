from datetime import datetime, timezone

from starspin.db.engine import get_sessionmaker, make_engine
from starspin.models import Base, LoyaltyReward, Merchant, Prize
from starspin.workflows import (
    award_purchase_points,
    play_spin,
    register_loyalty_client,
    submit_feedback,
)


def main() -> None:
    """Seed the development database with a demo merchant and some activity."""
    engine = make_engine()

    # Drop and recreate all tables for a clean reset of the schema.
    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
        Base.metadata.drop_all(bind=conn)
        conn.exec_driver_sql("PRAGMA foreign_keys=ON")

    Base.metadata.create_all(engine)
    Session = get_sessionmaker(engine)

    now = datetime.now(timezone.utc)

    with Session.begin() as session:
        merchant = Merchant(
            email="cafe@example.com",
            name="Demo Owner",
            business_name="Café Lumière",
            workflow_mode="web",
            unlucky_probability=30.0,
            retry_probability=10.0,
            loyalty_enabled=True,
            created_at=now,
            updated_at=now,
        )
        merchant.prizes = [
            Prize(name="Free espresso", probability=30.0, quantity=None),
            Prize(name="Croissant", probability=20.0, quantity=50),
            Prize(name="10% off next visit", probability=9.0, quantity=None),
            Prize(name="Brunch for two", probability=1.0, quantity=2),
        ]
        session.add(merchant)
        session.flush()

        for i, rating in enumerate([5, 4, 5, 2, 3, 5]):
            token = f"demo-token-{i:02d}"
            submit_feedback(session, merchant, rating, user_token=token)
            if rating >= 4:
                spin = play_spin(session, merchant, user_token=token, now=now)
                outcome = spin.coupon.code if spin.coupon else spin.outcome
                print(f"{token}: {outcome}")

        merchant.loyalty_rewards = [
            LoyaltyReward(name="Free cappuccino", points_cost=60, type="product"),
            LoyaltyReward(name="15% off", points_cost=150, type="discount", quantity_available=20),
        ]
        card = register_loyalty_client(
            session, merchant, name="Ada", phone="+33612345678", now=now
        ).client
        award_purchase_points(session, card, 2500, now=now)
        print(f"Loyalty card {card.card_id}: {card.points} points")

        print(f"Seeded merchant {merchant.public_id} ({merchant.business_name})")


if __name__ == "__main__":
    main()
