"""
Integration Models
Connected third-party accounts (QuickBooks, Shopify, Amazon); tokens are stored encrypted
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class QuickBooksCompany(Base):
    """QuickBooks Online company connected by a client"""

    __tablename__ = "quickbooks_companies"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)

    realm_id = Column(String(255), nullable=False)  # QuickBooks company ID
    company_name = Column(String(255), nullable=True)

    # OAuth tokens (encrypted)
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=False)
    token_expires_at = Column(DateTime, nullable=False)
    refresh_token_expires_at = Column(DateTime, nullable=True)

    is_sandbox = Column(Boolean, default=True)
    is_active = Column(Boolean, default=True)
    last_error = Column(Text, nullable=True)
    last_synced_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User")


class ShopifyStore(Base):
    __tablename__ = "shopify_stores"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)

    shop_domain = Column(String(255), nullable=False, index=True)
    shop_name = Column(String(255), nullable=True)
    shop_email = Column(String(255), nullable=True)
    shop_currency = Column(String(10), nullable=True)

    access_token = Column(Text, nullable=True)  # encrypted, offline token
    scope = Column(String(500), nullable=True)

    is_active = Column(Boolean, default=False)
    last_synced_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User")


class AmazonSeller(Base):
    __tablename__ = "amazon_sellers"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)

    selling_partner_id = Column(String(255), nullable=True)
    marketplace_ids = Column(JSON, nullable=True)

    # OAuth tokens (encrypted)
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime, nullable=True)

    is_sandbox = Column(Boolean, default=True)
    is_active = Column(Boolean, default=False)
    last_error = Column(Text, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User")
