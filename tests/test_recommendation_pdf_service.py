"""
Tests for the Recommendation PDF Report Service.
"""
from datetime import date, datetime

import pytest

from app.services.pdf_branding import PDFBrandingContext
from app.services.recommendation_engine import SoilSample, compute_recommendations
from app.services.recommendation_pdf_service import (
    FarmDetails,
    build_report_filename,
    create_recommendation_pdf_report,
)


@pytest.fixture
def sample():
    return SoilSample(nitrogen=80, phosphorus=10, potassium=100, ph=6.2, soil_texture="Clay")


@pytest.fixture
def farm():
    return FarmDetails(name="Green Acres", soil_type="Clay", location="Nashik", area=12.5, crop_type="Rice")


class TestBuildReportFilename:
    """Tests for build_report_filename()."""

    def test_format(self):
        assert build_report_filename("Green Acres", date(2024, 3, 9)) == "FertilizerReport_Green_Acres_2024-03-09.pdf"

    def test_unsafe_characters_are_replaced(self):
        assert build_report_filename("../Farm/<1>", date(2024, 3, 9)) == "FertilizerReport_Farm_1_2024-03-09.pdf"

    @pytest.mark.parametrize("name", ["", "///", None])
    def test_empty_name(self, name):
        assert build_report_filename(name, date(2024, 3, 9)) == "FertilizerReport_Farm_2024-03-09.pdf"


class TestCreateRecommendationPdfReport:
    """Tests for create_recommendation_pdf_report()."""

    def test_returns_pdf_bytes(self, sample, farm):
        recommendations = compute_recommendations(sample, "rice")

        pdf = create_recommendation_pdf_report(
            recommendations,
            farm,
            sample,
            test_date=date(2024, 3, 1),
            generated_at=datetime(2024, 3, 9, 10, 30),
        )

        assert isinstance(pdf, bytes)
        assert pdf.startswith(b"%PDF")
        assert pdf.rstrip().endswith(b"%%EOF")

    def test_empty_recommendations(self, sample, farm):
        pdf = create_recommendation_pdf_report([], farm, sample)
        assert pdf.startswith(b"%PDF")

    def test_markup_characters_are_escaped(self, sample):
        farm = FarmDetails(name="Smith & Sons <North>", location="A & B")
        recommendations = compute_recommendations(sample, "sugarcane")

        pdf = create_recommendation_pdf_report(recommendations, farm, sample)
        assert pdf.startswith(b"%PDF")

    def test_custom_branding(self, sample, farm):
        branding = PDFBrandingContext(
            company_name="AgroLab",
            company_tagline="Soil testing",
            company_email="lab@example.com",
            company_phone="+91 20 5550 1234",
        )

        pdf = create_recommendation_pdf_report(
            compute_recommendations(sample, "rice"), farm, sample, branding=branding
        )
        assert pdf.startswith(b"%PDF")
