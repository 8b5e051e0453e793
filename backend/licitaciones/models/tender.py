from sqlalchemy import BigInteger, Column, Integer, String, Text

from licitaciones.models.base import Base
from licitaciones.models.status import TenderStatus


class Tender(Base):
    __tablename__ = "tenders"

    id = Column(String(36), primary_key=True)  # uuid4, generated by the application
    name = Column(String(512), nullable=False)
    budget = Column(String(255), nullable=True)  # free text, currency embedded
    scoring_system = Column(Text, nullable=True)
    expedient_number = Column(String(255), nullable=True, index=True)
    deadline = Column(String(64), nullable=True)  # nominally YYYY-MM-DD
    tender_page_url = Column(Text, nullable=True)
    summary_url = Column(Text, nullable=True)
    admin_url = Column(Text, nullable=True)  # storage URL or external link
    tech_url = Column(Text, nullable=True)
    status = Column(String(32), default=TenderStatus.PENDING.value, nullable=False)
    ai_analysis = Column(Text, nullable=True)  # JSON AnalysisResult
    created_at = Column(BigInteger, nullable=False, index=True)  # epoch ms


class BusinessRules(Base):
    """Single-row table: the free-text decision criteria fed to the analysis."""
    __tablename__ = "business_rules"

    RULES_ID = 1

    id = Column(Integer, primary_key=True)
    content = Column(Text, nullable=False, default="")
