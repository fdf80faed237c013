"""SQLAlchemy ORM models for the quota ledger and COD risk tables"""

import uuid
from sqlalchemy import (
    Column, String, BigInteger, Boolean, Float, DateTime, Integer, ForeignKey, Text, CheckConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class TransactionPackage(Base):
    """Prepaid block of transaction credits"""

    __tablename__ = "transaction_package"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(Text, nullable=False)
    price = Column(BigInteger, nullable=False, default=0)  # price per transaction credit
    transaction_quota = Column(Integer, nullable=False)
    validity_days = Column(Integer, nullable=False, default=30)  # 0 = never expires
    commission_percent = Column(Float, nullable=False, default=0.0)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    subscriptions = relationship("MerchantSubscription", back_populates="package")

    __table_args__ = (
        CheckConstraint("transaction_quota > 0", name="ck_package_quota_positive"),
        CheckConstraint("validity_days >= 0", name="ck_package_validity_non_negative"),
    )


class Merchant(Base):
    """Merchant record as seen by the ledger (identity lives elsewhere)"""

    __tablename__ = "merchant"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(Text, nullable=False)
    name = Column(Text, nullable=False)
    cod_enabled = Column(Boolean, nullable=False, default=True)
    cod_max_amount = Column(BigInteger, nullable=True)
    cod_max_distance_km = Column(Float, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    current_subscription_id = Column(String(36), nullable=True)
    updated_at = Column(DateTime, nullable=True)


class MerchantSubscription(Base):
    """Merchant's purchased allotment of credits"""

    __tablename__ = "merchant_subscription"

    id = Column(String(36), primary_key=True, default=_uuid)
    merchant_id = Column(String(36), ForeignKey("merchant.id"), nullable=False, index=True)
    package_id = Column(String(36), ForeignKey("transaction_package.id"), nullable=False)
    transaction_quota = Column(Integer, nullable=False)
    used_quota = Column(Integer, nullable=False, default=0)
    started_at = Column(DateTime, nullable=False)
    expired_at = Column(DateTime, nullable=False, index=True)
    status = Column(Text, nullable=False, default="ACTIVE", index=True)
    payment_amount = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, server_default=func.now())

    package = relationship("TransactionPackage", back_populates="subscriptions")

    __table_args__ = (
        CheckConstraint("used_quota >= 0", name="ck_subscription_used_non_negative"),
        CheckConstraint("used_quota <= transaction_quota", name="ck_subscription_no_oversell"),
    )


class QuotaTierRecord(Base):
    """Admin-managed price tier (max_price NULL = open-ended)"""

    __tablename__ = "quota_tier"

    id = Column(String(36), primary_key=True, default=_uuid)
    min_price = Column(BigInteger, nullable=False)
    max_price = Column(BigInteger, nullable=True)
    credit_cost = Column(Integer, nullable=False, default=1)


class BuyerProfile(Base):
    """Buyer COD reputation"""

    __tablename__ = "buyer_profile"

    buyer_id = Column(String(64), primary_key=True)
    trust_score = Column(Integer, nullable=False, default=100)
    cod_fail_count = Column(Integer, nullable=False, default=0)
    cod_enabled = Column(Boolean, nullable=False, default=True)
    is_verified_buyer = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("trust_score >= 0 AND trust_score <= 100", name="ck_buyer_trust_bounds"),
        CheckConstraint("cod_fail_count >= 0", name="ck_buyer_fail_count_non_negative"),
    )


class Order(Base):
    """Checkout order (only the fields the ledger and COD engine need)"""

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    buyer_id = Column(String(64), nullable=False, index=True)
    merchant_id = Column(String(36), ForeignKey("merchant.id"), nullable=False, index=True)
    subtotal = Column(BigInteger, nullable=False)
    service_fee = Column(BigInteger, nullable=False, default=0)
    total = Column(BigInteger, nullable=False)
    credits_used = Column(Integer, nullable=False, default=0)
    payment_method = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="NEW")
    cod_status = Column(Text, nullable=True, index=True)
    confirmation_deadline = Column(DateTime, nullable=True)
    cod_rejection_reason = Column(Text, nullable=True)
    is_flash_sale = Column(Boolean, nullable=False, default=False)
    flash_sale_discount = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=True)
