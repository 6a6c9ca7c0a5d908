from sqlalchemy import Column, Integer, String, Date, DateTime, Text
from sqlalchemy.sql import func
from database import Base

class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True)
    invoice_date = Column(Date, nullable=False, index=True)
    organization = Column(String(255), nullable=False)
    invoice_number = Column(String(100), nullable=False, unique=True, index=True)
    amount = Column(String(50), nullable=False)

    payment_date = Column(Date, nullable=True)
    responsible = Column(String(100), nullable=True)
    note = Column(Text, nullable=True)

    invoice_pdf_path = Column(String(500), nullable=True)
    payment_pdf_path = Column(String(500), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
