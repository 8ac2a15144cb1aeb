"""
Recommendation PDF Report Service.
Generates a downloadable PDF of ranked fertilizer recommendations.
"""
import io
import re
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Sequence
from xml.sax.saxutils import escape

from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.lib.colors import HexColor
from reportlab.platypus import (
    SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle, KeepTogether
)
from reportlab.lib.enums import TA_CENTER

from app.services.pdf_branding import (
    PDFBrandingContext,
    draw_professional_letterhead,
    draw_professional_footer,
    BRAND_GREEN
)
from app.services.recommendation_engine import ScoredRecommendation, SoilSample

logger = logging.getLogger(__name__)

PRIMARY_COLOR = HexColor(BRAND_GREEN)
TEXT_COLOR = HexColor("#374151")
LIGHT_BG = HexColor("#f0fdf4")
GRID_COLOR = HexColor("#d1d5db")

MAX_BENEFITS_PER_RECOMMENDATION = 3


@dataclass
class FarmDetails:
    """Farm information printed in the report summary."""
    name: str
    soil_type: str = ""
    location: str = ""
    area: float = 0.0  # acres
    crop_type: str = ""


def build_report_filename(farm_name: str, report_date: Optional[date] = None) -> str:
    """FertilizerReport_<farm>_<YYYY-MM-DD>.pdf, with the farm name made filesystem safe."""
    report_date = report_date or date.today()
    safe_name = re.sub(r"[^A-Za-z0-9_-]+", "_", farm_name or "").strip("_") or "Farm"
    return f"FertilizerReport_{safe_name}_{report_date.isoformat()}.pdf"


def _summary_rows(farm: FarmDetails, sample: SoilSample, test_date: Optional[date]) -> List[List[str]]:
    rows = [
        ["Farm Name:", farm.name, "Soil Type:", farm.soil_type or sample.soil_texture or "-"],
        ["Location:", farm.location or "-", "Area:", f"{farm.area:g} acres"],
        ["Crop:", farm.crop_type or "-", "pH Level:", f"{sample.ph:g}"],
        ["Nitrogen:", f"{sample.nitrogen:g} kg/ha", "Phosphorus:", f"{sample.phosphorus:g} kg/ha"],
        ["Potassium:", f"{sample.potassium:g} kg/ha", "Test Date:", test_date.strftime("%d/%m/%Y") if test_date else "-"],
    ]
    return [[escape(str(cell)) for cell in row] for row in rows]


def create_recommendation_pdf_report(
    recommendations: Sequence[ScoredRecommendation],
    farm: FarmDetails,
    sample: SoilSample,
    test_date: Optional[date] = None,
    generated_at: Optional[datetime] = None,
    branding: Optional[PDFBrandingContext] = None
) -> bytes:
    """
    Generate a PDF report for ranked fertilizer recommendations.

    Args:
        recommendations: Ranked output of the recommendation engine
        farm: Farm details for the summary block
        sample: The soil sample the recommendations were computed from
        test_date: Date of the soil test
        generated_at: Timestamp printed in the footer line (defaults to now)
        branding: Letterhead configuration

    Returns:
        PDF file as bytes
    """
    buffer = io.BytesIO()
    branding = branding or PDFBrandingContext()
    generated_at = generated_at or datetime.now()

    def header_footer(canvas, doc):
        draw_professional_letterhead(
            canvas, doc, branding,
            report_title="FERTILIZER RECOMMENDATIONS",
            module_color=PRIMARY_COLOR
        )
        draw_professional_footer(canvas, doc, branding)

    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.7*inch,
        leftMargin=0.7*inch,
        topMargin=1.1*inch,
        bottomMargin=0.7*inch,
        title="Fertilizer Recommendations Report",
    )

    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'ReportTitle',
        parent=styles['Title'],
        fontSize=18,
        textColor=PRIMARY_COLOR,
        spaceAfter=8,
        alignment=TA_CENTER
    )

    heading_style = ParagraphStyle(
        'ReportHeading',
        parent=styles['Heading2'],
        fontSize=12,
        textColor=PRIMARY_COLOR,
        spaceBefore=10,
        spaceAfter=6
    )

    item_title_style = ParagraphStyle(
        'ItemTitle',
        parent=styles['Normal'],
        fontSize=11,
        fontName='Helvetica-Bold',
        textColor=TEXT_COLOR,
        spaceBefore=6,
        spaceAfter=2
    )

    body_style = ParagraphStyle(
        'ItemBody',
        parent=styles['Normal'],
        fontSize=9,
        textColor=TEXT_COLOR,
        leftIndent=12,
        spaceAfter=1
    )

    bullet_style = ParagraphStyle(
        'ItemBullet',
        parent=body_style,
        leftIndent=24
    )

    footer_style = ParagraphStyle(
        'GeneratedOn',
        parent=styles['Normal'],
        fontSize=8,
        textColor=HexColor("#6b7280"),
        spaceBefore=12
    )

    story = []
    story.append(Paragraph("Fertilizer Recommendations Report", title_style))

    # === FARM & SOIL SUMMARY ===
    story.append(Paragraph("Farm &amp; Soil Information", heading_style))
    summary_table = Table(
        _summary_rows(farm, sample, test_date),
        colWidths=[1.0*inch, 2.3*inch, 1.0*inch, 2.3*inch]
    )
    summary_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (0, -1), LIGHT_BG),
        ('BACKGROUND', (2, 0), (2, -1), LIGHT_BG),
        ('TEXTCOLOR', (0, 0), (-1, -1), TEXT_COLOR),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTNAME', (2, 0), (2, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('GRID', (0, 0), (-1, -1), 0.5, GRID_COLOR),
        ('PADDING', (0, 0), (-1, -1), 4),
    ]))
    story.append(summary_table)

    # === RANKED RECOMMENDATIONS ===
    story.append(Paragraph("Top Fertilizer Recommendations", heading_style))

    if not recommendations:
        story.append(Paragraph("No fertilizer candidates are available for this crop.", body_style))

    for index, rec in enumerate(recommendations, start=1):
        block = [
            Paragraph(f"{index}. {escape(rec.name)} ({escape(rec.npk_ratio)})", item_title_style),
            Paragraph(f"<b>Dosage:</b> {escape(rec.dosage)}", body_style),
            Paragraph(f"<b>Application:</b> {escape(rec.application_method)}", body_style),
            Paragraph(f"<b>Match Score:</b> {rec.score}/100", body_style),
        ]
        benefits = rec.benefits[:MAX_BENEFITS_PER_RECOMMENDATION]
        if benefits:
            block.append(Paragraph("<b>Benefits:</b>", body_style))
            for benefit in benefits:
                block.append(Paragraph(f"• {escape(benefit)}", bullet_style))
        story.append(KeepTogether(block))

    story.append(Paragraph(
        f"Generated on {generated_at.strftime('%d/%m/%Y %H:%M')}",
        footer_style
    ))

    doc.build(story, onFirstPage=header_footer, onLaterPages=header_footer)
    logger.info(f"[RecommendationPDF] Report for '{farm.name}' with {len(recommendations)} recommendations")

    return buffer.getvalue()
