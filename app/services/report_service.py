"""
Report Rendering Service

Renders a query's collected data and executive report into a static HTML
document with Jinja2, optionally converts it to PDF with WeasyPrint, stores
the files and attaches the resulting URL to the report.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.db.models import (
    CompetitorRecord,
    ResearchQuery,
    ResearchReport,
    SentimentRecord,
    TrendRecord,
)
from app.exceptions import QueryNotFoundError
from app.services.storage_service import StorageService
from app.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)

# Optional PDF support - requires system libraries (pango, cairo)
try:
    from weasyprint import HTML
    WEASYPRINT_AVAILABLE = True
except OSError:
    WEASYPRINT_AVAILABLE = False

TEMPLATES_DIR = Path(__file__).parent.parent / "templates"
REPORT_TEMPLATE = "reports/research_report.html"


def sanitize_filename(text: str) -> str:
    """Sanitize text for use in filenames."""
    if not text:
        return "unknown"
    text = re.sub(r'[<>:"/\\|?*]', '', text)
    text = re.sub(r'\s+', '_', text.strip())
    return text[:50]


def _get_jinja_env() -> Environment:
    """Create and configure Jinja2 environment."""
    return Environment(
        loader=FileSystemLoader(str(TEMPLATES_DIR)),
        autoescape=True,
    )


def generate_pdf_from_html(html_content: str) -> bytes:
    """Convert rendered HTML to PDF bytes. Blocking; run it in a worker thread."""
    return HTML(string=html_content).write_pdf()


def _value(enum_or_str) -> str:
    return getattr(enum_or_str, "value", enum_or_str) or ""


def build_report_context(query: ResearchQuery, sentiments, competitors, trends, report: Optional[ResearchReport]) -> dict:
    """Flatten ORM rows into display-ready template values."""
    return {
        "query": query,
        "query_type": _value(query.query_type),
        "generated_on": utc_now().strftime("%B %d, %Y"),
        "report": report,
        "report_provenance": _value(report.provenance).replace("_", " ") if report else "",
        "sentiments": [
            {
                "source": s.source,
                "label": _value(s.sentiment),
                "confidence_pct": round((s.confidence or 0) * 100),
                "content": s.content,
            }
            for s in sentiments
        ],
        "competitors": [
            {
                "competitor_name": c.competitor_name,
                "price_display": f"${c.price:,.2f}" if c.price is not None else "N/A",
                "rating_display": f"{c.rating:.1f}" if c.rating is not None else "N/A",
                "features": c.features or [],
                "url": c.url,
            }
            for c in competitors
        ],
        "trends": [
            {
                "keyword": t.keyword,
                "volume_display": f"{t.search_volume:,}" if t.search_volume is not None else "N/A",
                "direction": _value(t.trend_direction),
                "time_period": t.time_period,
            }
            for t in trends
        ],
    }


@dataclass
class RenderResult:
    html_url: str
    pdf_url: Optional[str] = None

    @property
    def document_url(self) -> str:
        return self.pdf_url or self.html_url


class ReportRenderer:
    """Produces the shareable report document for a query."""

    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        storage: Optional[StorageService] = None,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.storage = storage or StorageService(settings)
        self.env = _get_jinja_env()

    async def render_html(self, query_id: str) -> tuple[ResearchQuery, str]:
        """
        Render the report HTML for a query.

        Raises:
            QueryNotFoundError: Unknown query
        """
        async with self.session_factory() as session:
            query = await session.get(ResearchQuery, query_id)
            if query is None:
                raise QueryNotFoundError(query_id)

            sentiments = (await session.execute(
                select(SentimentRecord).where(SentimentRecord.query_id == query_id).order_by(SentimentRecord.created_at)
            )).scalars().all()
            competitors = (await session.execute(
                select(CompetitorRecord).where(CompetitorRecord.query_id == query_id).order_by(CompetitorRecord.created_at)
            )).scalars().all()
            trends = (await session.execute(
                select(TrendRecord).where(TrendRecord.query_id == query_id).order_by(TrendRecord.created_at)
            )).scalars().all()
            report = (await session.execute(
                select(ResearchReport).where(ResearchReport.query_id == query_id)
            )).scalar_one_or_none()

        template = self.env.get_template(REPORT_TEMPLATE)
        html = template.render(**build_report_context(query, sentiments, competitors, trends, report))
        return query, html

    async def render(self, query_id: str) -> RenderResult:
        """Render, store and attach the report document. Returns the stored URLs."""
        logger.info(f"Generating report document for query: {query_id}")
        query, html = await self.render_html(query_id)

        base_name = f"report_{sanitize_filename(query.query_text)}_{query_id[:8]}"
        result = RenderResult(html_url=await self.storage.upload_report(html, f"{base_name}.html"))

        if self.settings.render_pdf and WEASYPRINT_AVAILABLE:
            try:
                pdf_bytes = await asyncio.to_thread(generate_pdf_from_html, html)
                result.pdf_url = await self.storage.upload_pdf(pdf_bytes, f"{base_name}.pdf")
            except Exception as e:
                logger.warning(f"PDF generation failed for query {query_id}, keeping HTML only: {e}")

        async with self.session_factory() as session:
            report = (await session.execute(
                select(ResearchReport).where(ResearchReport.query_id == query_id)
            )).scalar_one_or_none()
            if report is not None:
                report.document_url = result.document_url
                await session.commit()

        logger.info(f"Report document generated for query {query_id}: {result.document_url}")
        return result
