"""KYC models — identity verification applications and their documents."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Date, ForeignKey, Text, Integer, LargeBinary
from sqlalchemy.orm import relationship

from rwa_platform.database import Base


class KycSubmission(Base):
    __tablename__ = "kyc_submissions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(128), ForeignKey("users.id"), nullable=False, index=True)
    submission_type = Column(String(20), nullable=False, default="individual")
    document_type = Column(String(30), nullable=False)  # passport | national_id | drivers_license
    document_number = Column(String(100), nullable=False)
    issuing_country = Column(String(100), nullable=False)
    expiry_date = Column(Date, nullable=True)
    personal_info = Column(Text, nullable=False)  # JSON string
    # pending | under_review | approved | rejected | requires_resubmission
    status = Column(String(30), nullable=False, default="pending")
    submitted_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    reviewed_at = Column(DateTime, nullable=True)
    reviewed_by = Column(String(128), nullable=True)
    review_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    user = relationship("User", back_populates="kyc_submissions")
    documents = relationship("KycDocument", back_populates="submission", cascade="all, delete-orphan")


class KycDocument(Base):
    __tablename__ = "kyc_documents"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    submission_id = Column(String(36), ForeignKey("kyc_submissions.id"), nullable=False, index=True)
    document_type = Column(String(30), nullable=False)  # document_front | document_back | selfie | proof_of_address
    file_name = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String(50), nullable=False)
    content = Column(LargeBinary, nullable=False)
    uploaded_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))

    # Relationships
    submission = relationship("KycSubmission", back_populates="documents")
