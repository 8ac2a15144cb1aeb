"""Letterhead and footer drawing for recommendation reports."""
from dataclasses import dataclass
from typing import Optional

from reportlab.lib.colors import HexColor
from reportlab.lib.units import inch

BRAND_GREEN = "#16a34a"
BRAND_MUTED = "#6b7280"


@dataclass
class PDFBrandingContext:
    company_name: str = "FertilizerPro"
    company_tagline: Optional[str] = "Smart fertilizer recommendations for every farm"
    company_email: Optional[str] = None
    company_phone: Optional[str] = None


def draw_professional_letterhead(canvas, doc, branding: PDFBrandingContext, report_title: str, module_color=None) -> None:
    """Company name, tagline and report title above the page frame, with a colored rule."""
    color = module_color or HexColor(BRAND_GREEN)
    page_width, page_height = doc.pagesize
    top = page_height - 0.5 * inch

    canvas.saveState()
    canvas.setFillColor(color)
    canvas.setFont("Helvetica-Bold", 14)
    canvas.drawString(doc.leftMargin, top, branding.company_name)

    if branding.company_tagline:
        canvas.setFillColor(HexColor(BRAND_MUTED))
        canvas.setFont("Helvetica", 8)
        canvas.drawString(doc.leftMargin, top - 12, branding.company_tagline)

    canvas.setFillColor(color)
    canvas.setFont("Helvetica-Bold", 9)
    canvas.drawRightString(page_width - doc.rightMargin, top, report_title)

    canvas.setStrokeColor(color)
    canvas.setLineWidth(1.5)
    canvas.line(doc.leftMargin, top - 20, page_width - doc.rightMargin, top - 20)
    canvas.restoreState()


def draw_professional_footer(canvas, doc, branding: PDFBrandingContext) -> None:
    """Contact line and page number at the bottom of every page."""
    page_width, _ = doc.pagesize
    bottom = 0.4 * inch

    canvas.saveState()
    canvas.setFillColor(HexColor(BRAND_MUTED))
    canvas.setFont("Helvetica", 7)

    contact = " | ".join(c for c in (branding.company_email, branding.company_phone) if c)
    canvas.drawString(doc.leftMargin, bottom, contact or branding.company_name)
    canvas.drawRightString(page_width - doc.rightMargin, bottom, f"Page {canvas.getPageNumber()}")
    canvas.restoreState()
