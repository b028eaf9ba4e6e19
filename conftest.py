import itertools
import os

# Settings are read at import time, so the environment has to be ready first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RATE_LIMIT_STORAGE_URI"] = "memory://"
os.environ["SHOPIER_API_KEY"] = "test-api-key"
os.environ["SHOPIER_API_SECRET"] = "S"
os.environ["MAIL_ENABLED"] = "false"
os.environ["FRONTEND_URL"] = "http://frontend.test"
os.environ["APP_URL"] = "http://api.test"
os.environ["PRODUCTION"] = "false"
os.environ["PAYMENT_SANDBOX_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["DEBUG"] = "false"

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.core.database import Base, SessionLocal, engine
from app.core.dependencies import get_mailer
from app.core.security import jwt_manager
from app.models import Course, DiscountCode, ReferralCode
from main import app


_slugs = itertools.count(1)


class FakeMailer:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    def send_purchase_confirmation(self, order, course=None):
        if self.fail:
            raise ConnectionError("SMTP unreachable")
        self.sent.append(order.order_id)
        return True


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def client(db, mailer):
    app.dependency_overrides[get_mailer] = lambda: mailer
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_course(db):
    def _make(
        price="100.00",
        early_bird_price=None,
        early_bird_deadline=None,
        is_active=True,
        title="Python for Data Analysis",
        slug=None,
    ):
        course = Course(
            slug=slug or f"course-{next(_slugs)}",
            title=title,
            course_type="online",
            price=Decimal(price),
            early_bird_price=Decimal(early_bird_price) if early_bird_price else None,
            early_bird_deadline=early_bird_deadline,
            is_active=is_active,
        )
        db.add(course)
        db.commit()
        db.refresh(course)
        return course

    return _make


@pytest.fixture
def make_discount(db):
    def _make(
        code="SAVE20",
        discount_type="percentage",
        amount="20",
        valid_until=None,
        applicable_courses=None,
        usage_count=0,
        max_usage=10,
        balance=None,
    ):
        discount = DiscountCode(
            code=code,
            discount_type=discount_type,
            discount_amount=Decimal(amount),
            valid_until=valid_until or (date.today() + timedelta(days=30)),
            applicable_courses=applicable_courses or [],
            usage_count=usage_count,
            max_usage=max_usage,
            has_balance_limit=balance is not None,
            remaining_balance=Decimal(balance) if balance is not None else None,
        )
        db.add(discount)
        db.commit()
        db.refresh(discount)
        return discount

    return _make


@pytest.fixture
def make_referral(db):
    def _make(owner="user_referrer", code="REFOWNER1"):
        referral = ReferralCode(code=code, owner_user_id=owner, usage_count=0, is_active=True)
        db.add(referral)
        db.commit()
        db.refresh(referral)
        return referral

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user_id="user_buyer", email="buyer@example.com"):
        token = jwt_manager.create_access_token(user_id, email=email)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def future():
    return datetime.now(timezone.utc) + timedelta(days=7)
