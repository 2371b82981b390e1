import re
import unittest
from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from starspin.models import Base, Coupon, Feedback, Merchant, Prize, Spin
from starspin.models.utils import coupon_prefix, generate_coupon_code
from starspin.validation import is_valid_uuid


class DBTestCase(unittest.TestCase):
    def setUp(self):
        # In-memory SQLite for isolation
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )

    def tearDown(self):
        self.engine.dispose()

    def _merchant(self, session, **kwargs) -> Merchant:
        merchant = Merchant(
            email=kwargs.pop("email", "shop@example.com"),
            business_name=kwargs.pop("business_name", "Bakery Bliss"),
            **kwargs,
        )
        session.add(merchant)
        session.flush()
        return merchant


class ModelTests(DBTestCase):
    def test_merchant_gets_public_id(self):
        with self.Session() as session:
            merchant = self._merchant(session)
            session.commit()

            self.assertTrue(is_valid_uuid(merchant.public_id))
            found = Merchant.get_by_public_id(session, merchant.public_id)
            self.assertIsNotNone(found)
            assert found is not None
            self.assertEqual(found.id, merchant.id)
            self.assertIs(Merchant.get_by_email(session, "shop@example.com"), merchant)
            self.assertEqual(merchant.workflow_mode, "web")
            self.assertFalse(merchant.uses_whatsapp)

    def test_display_name_fallbacks(self):
        self.assertEqual(Merchant(email="a@b.c", business_name="Shop").display_name, "Shop")
        self.assertEqual(Merchant(email="a@b.c", name="Owner").display_name, "Owner")
        self.assertEqual(Merchant(email="a@b.c").display_name, "StarSpin")

    def test_wheel_segments_follow_prize_order(self):
        with self.Session() as session:
            merchant = self._merchant(session, unlucky_probability=4.0)
            merchant.prizes.extend(
                [
                    Prize(name="Coffee", probability=3.0),
                    Prize(name="Sold out", probability=2.0, quantity=0),
                    Prize(name="Cake", probability=1.0, quantity=5),
                ]
            )
            session.flush()

            segments = merchant.wheel_segments()
            self.assertEqual([s.name for s in segments], ["Coffee", "Cake", "#UNLUCKY#"])
            self.assertEqual(segments[0].prize_id, merchant.prizes[0].id)
            self.assertEqual(
                [p.name for p in Prize.get_for_merchant(session, merchant.id)],
                ["Coffee", "Sold out", "Cake"],
            )

    def test_prize_stock(self):
        unlimited = Prize(name="Coffee", probability=1.0, quantity=None)
        unlimited.consume_one()
        self.assertIsNone(unlimited.quantity)
        self.assertTrue(unlimited.in_stock)

        limited = Prize(name="Cake", probability=1.0, quantity=1)
        self.assertEqual(limited.weight, 1.0)
        limited.consume_one()
        self.assertEqual(limited.quantity, 0)
        self.assertFalse(limited.in_stock)
        with self.assertRaises(ValueError):
            limited.consume_one()

    def test_negative_probability_rejected_by_database(self):
        with self.Session() as session:
            merchant = self._merchant(session)
            session.add(Prize(merchant_id=merchant.id, name="Bad", probability=-1.0))
            with self.assertRaises(IntegrityError):
                session.flush()

    def test_feedback_rating_range_enforced(self):
        with self.Session() as session:
            merchant = self._merchant(session)
            session.add(Feedback(merchant_id=merchant.id, rating=7))
            with self.assertRaises(IntegrityError):
                session.flush()

    def test_coupon_expiry_and_use(self):
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        with self.Session() as session:
            merchant = self._merchant(session)
            spin = Spin(merchant_id=merchant.id, outcome="prize", created_at=now)
            session.add(spin)
            session.flush()
            coupon = Coupon(
                spin_id=spin.id,
                merchant_id=merchant.id,
                code="BAK-0000ABCD",
                prize_name="Coffee",
                expires_at=now + timedelta(hours=24),
            )
            session.add(coupon)
            session.commit()

            found = Coupon.get_by_code(session, "BAK-0000ABCD")
            self.assertIs(found, coupon)
            self.assertIs(spin.coupon, coupon)
            self.assertFalse(coupon.is_expired(reference_time=now))
            self.assertEqual(
                coupon.time_left(reference_time=now + timedelta(hours=23)),
                timedelta(hours=1),
            )
            self.assertTrue(coupon.is_expired(reference_time=now + timedelta(hours=24)))
            self.assertEqual(
                coupon.time_left(reference_time=now + timedelta(days=2)), timedelta(0)
            )

            used_at = now + timedelta(hours=1)
            coupon.mark_used(timestamp=used_at)
            coupon.mark_used(timestamp=now + timedelta(hours=2))
            self.assertTrue(coupon.used)
            self.assertEqual(coupon.used_at, used_at)

    def test_coupon_code_unique(self):
        with self.Session() as session:
            merchant = self._merchant(session)
            spins = [Spin(merchant_id=merchant.id, outcome="prize") for _ in range(2)]
            session.add_all(spins)
            session.flush()
            expires = datetime.now(timezone.utc) + timedelta(hours=24)
            for spin in spins:
                session.add(
                    Coupon(
                        spin_id=spin.id,
                        merchant_id=merchant.id,
                        code="DUP-00000000",
                        prize_name="Coffee",
                        expires_at=expires,
                    )
                )
            with self.assertRaises(IntegrityError):
                session.flush()

    def test_spin_find_since(self):
        day = datetime(2024, 5, 1, tzinfo=timezone.utc)
        with self.Session() as session:
            merchant = self._merchant(session)
            session.add_all(
                [
                    Spin(merchant_id=merchant.id, outcome="unlucky", user_token="t1",
                         created_at=day - timedelta(hours=1)),
                    Spin(merchant_id=merchant.id, outcome="retry", user_token="t1",
                         created_at=day + timedelta(hours=2)),
                ]
            )
            session.flush()

            latest = Spin.find_since(session, merchant.id, "t1", day)
            assert latest is not None
            self.assertEqual(latest.outcome, "retry")
            self.assertIsNone(
                Spin.find_since(session, merchant.id, "t1", day, exclude_outcome="retry")
            )
            self.assertIsNone(Spin.find_since(session, merchant.id, "other", day))


class CouponCodeTests(DBTestCase):
    def test_prefix_from_business_name(self):
        self.assertEqual(coupon_prefix("Café Lumière"), "CAF")
        self.assertEqual(coupon_prefix("  a-b c"), "ABC")
        self.assertEqual(coupon_prefix(None), "STR")
        self.assertEqual(coupon_prefix("!!"), "STR")

    def test_generated_code_format(self):
        code = generate_coupon_code("Bakery Bliss")
        self.assertRegex(code, re.compile(r"^BAK-[0-9A-F]{8}$"))

    def test_generated_code_avoids_pending_collision(self):
        from unittest.mock import patch
        import uuid

        with self.Session() as session:
            merchant = self._merchant(session)
            spin = Spin(merchant_id=merchant.id, outcome="prize")
            session.add(spin)
            session.flush()
            session.add(
                Coupon(
                    spin_id=spin.id,
                    merchant_id=merchant.id,
                    code="BAK-AAAAAAAA",
                    prize_name="Coffee",
                    expires_at=datetime.now(timezone.utc),
                )
            )
            values = iter([uuid.UUID("aaaaaaaa" + "0" * 24), uuid.UUID("bbbbbbbb" + "0" * 24)])
            with patch("starspin.models.utils.uuid.uuid4", side_effect=lambda: next(values)):
                code = generate_coupon_code("Bakery", session=session)
            self.assertEqual(code, "BAK-BBBBBBBB")


if __name__ == "__main__":
    unittest.main()
