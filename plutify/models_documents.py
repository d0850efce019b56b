"""
Document Vault Models
Client documents (tax returns, statements, IDs) stored as metadata; the file
itself lives with the upload service and is referenced by URL
"""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.sql import func

from .database import Base

# (value, label, description)
DOCUMENT_CATEGORIES = (
    ("tax_returns", "Tax Returns", "Annual tax returns (1040, etc)"),
    ("w2_forms", "W-2 Forms", "Employee wage statements"),
    ("1099_forms", "1099 Forms", "Independent contractor income"),
    ("bank_statements", "Bank Statements", "Monthly bank statements"),
    ("profit_loss", "Profit & Loss", "P&L statements"),
    ("balance_sheets", "Balance Sheets", "Company balance sheets"),
    ("legal_documents", "Legal Documents", "Contracts and legal papers"),
    ("business_license", "Business License", "Business licenses and permits"),
    ("ein_letter", "EIN Letter", "IRS EIN confirmation letter"),
    ("incorporation", "Incorporation", "Articles of incorporation"),
    ("contracts", "Contracts", "Business contracts"),
    ("invoices", "Invoices", "Customer invoices"),
    ("receipts", "Receipts", "Purchase receipts"),
    ("passport", "Passport", "Passport copy"),
    ("drivers_license", "Driver's License", "Driver license copy"),
    ("ssn_card", "SSN Card", "Social Security card"),
    ("other", "Other", "Other documents"),
)
DOCUMENT_CATEGORY_VALUES = tuple(value for value, _, _ in DOCUMENT_CATEGORIES)

DOCUMENT_STATUSES = ("active", "archived", "deleted")


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = (Index("ix_document_user_status_category", "user_id", "status", "category"),)

    id = Column(Integer, primary_key=True, index=True)
    # Owner; staff uploading on a client's behalf still file it under the client
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=False)

    file_name = Column(String(255), nullable=False)
    file_url = Column(String(1000), nullable=False)
    file_type = Column(String(20), nullable=True)  # extension, lowercased
    mime_type = Column(String(100), nullable=True)
    file_size = Column(Integer, nullable=True)

    category = Column(String(30), nullable=False, index=True)
    tax_year = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="active")

    access_count = Column(Integer, default=0, nullable=False)
    last_accessed_at = Column(DateTime, nullable=True)
    last_accessed_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Soft delete
    deleted_at = Column(DateTime, nullable=True)
    deleted_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
