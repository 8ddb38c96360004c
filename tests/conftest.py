"""Pytest configuration and shared fixtures."""

import os

os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ.setdefault("PDFCO_API_KEY", "test-pdfco-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Any, Callable, Dict

import pytest
from fastapi.testclient import TestClient

from plancompare.main import app
from plancompare.services.normalization.format_normalizer import normalize_document


def _coverage(
    coverage_type: str,
    plan_option_name: str,
    amount: float,
    carrier_name: str = "Sun Life",
    **overrides: Any,
) -> Dict[str, Any]:
    entry = {
        "coverageType": coverage_type,
        "carrierName": carrier_name,
        "planOptionName": plan_option_name,
        "premium": amount,
        "monthlyPremium": amount,
        "unitRate": 0.25,
        "unitRateBasis": "per $1,000",
        "volume": 1200000,
        "lives": 42,
        "benefitDetails": {"maximum": "$50,000", "notes": "Not Specified"},
    }
    entry.update(overrides)
    return entry


@pytest.fixture
def test_client() -> TestClient:
    """Create FastAPI test client.

    Returns:
        TestClient: FastAPI test client instance
    """
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest.fixture
def sample_pdf_content() -> bytes:
    """Minimal bytes that pass the PDF header check."""
    return b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n1 0 obj\n<<\n/Type /Catalog\n/Pages 2 0 R\n>>\nendobj\n"


@pytest.fixture
def coverage_factory() -> Callable[..., Dict[str, Any]]:
    """Build one valid coverage entry in wire form."""
    return _coverage


@pytest.fixture
def quote_payload() -> Dict[str, Any]:
    """Overview-layout quote with two plan options and four benefits each."""
    return {
        "metadata": {
            "documentType": "Current",
            "clientName": "Acme Manufacturing",
            "carrierName": "Sun Life",
            "effectiveDate": "2025-01-01",
            "quoteDate": "2024-11-15",
            "policyNumber": "SL-12345",
            "planOptionName": "Option A",
            "totalProposedMonthlyPlanPremium": "$2,150.00",
            "planOptionTotals": [
                {"planOptionName": "Option A", "totalMonthlyPremium": 2150.0},
                {"planOptionName": "Option B", "totalMonthlyPremium": 1890.5},
            ],
            "rateGuarantees": "12 months",
            "highLevelOverview": [
                {
                    "planOption": "Option A",
                    "carrierName": "Sun Life",
                    "totalMonthlyPremium": 2150.0,
                    "rateGuarantee": "12 months",
                },
                {
                    "planOption": "Option B",
                    "carrierName": "Sun Life",
                    "totalMonthlyPremium": 1890.5,
                    "rateGuarantee": "12 months",
                },
            ],
            "granularBreakdown": [
                {
                    "benefitType": "Basic Life",
                    "benefitCategory": "Pooled",
                    "carrierData": [
                        {"planOption": "Option A", "included": True, "monthlyPremium": 300.0},
                        {"planOption": "Option B", "included": True, "monthlyPremium": 250.0},
                    ],
                },
                {
                    "benefitType": "LTD",
                    "benefitCategory": "Pooled",
                    "carrierData": [
                        {"planOption": "Option A", "included": True, "monthlyPremium": 450.0},
                        {"planOption": "Option B", "included": True, "monthlyPremium": 400.5},
                    ],
                },
                {
                    "benefitType": "Extended Healthcare",
                    "benefitCategory": "Experience Rated",
                    "carrierData": [
                        {"planOption": "Option A", "included": True, "monthlyPremium": 700.0},
                        {"planOption": "Option B", "included": True, "monthlyPremium": 640.0},
                    ],
                },
                {
                    "benefitType": "Dental Care",
                    "benefitCategory": "Experience Rated",
                    "carrierData": [
                        {"planOption": "Option A", "included": True, "monthlyPremium": 700.0},
                        {"planOption": "Option B", "included": True, "monthlyPremium": 600.0},
                    ],
                },
                {
                    "benefitType": "Vision",
                    "benefitCategory": "Experience Rated",
                    "carrierData": [
                        {"planOption": "Option A", "included": False},
                        {"planOption": "Option B", "included": False},
                    ],
                },
            ],
        },
        "coverages": [
            _coverage("Basic Life", "Option A", 300.0),
            _coverage("LTD", "Option A", 450.0),
            _coverage("Extended Healthcare", "Option A", 700.0),
            _coverage("Dental Care", "Option A", 700.0),
            _coverage("Basic Life", "Option B", 250.0),
            _coverage("LTD", "Option B", 400.5),
            _coverage("Extended Healthcare", "Option B", 640.0),
            _coverage("Dental Care", "Option B", 600.0),
        ],
        "planNotes": [{"note": "Rates guaranteed for 12 months."}],
    }


@pytest.fixture
def legacy_payload() -> Dict[str, Any]:
    """Plan-options layout quote with two plan options."""
    return {
        "metadata": {
            "carrierName": "Manulife",
            "planOptionName": "Standard",
            "planOptions": [
                {
                    "planOptionName": "Standard",
                    "carrierProposals": [
                        {
                            "carrierName": "Manulife",
                            "totalMonthlyPremium": 900.0,
                            "rateGuaranteeText": "24 months",
                        }
                    ],
                },
                {
                    "planOptionName": "Enhanced",
                    "carrierProposals": [{"carrierName": "Manulife", "totalMonthlyPremium": 1200.0}],
                },
            ],
        },
        "coverages": [
            _coverage("Basic Life", "Standard", 400.0, carrier_name="Manulife"),
            _coverage("Dental Care", "Standard", 500.0, carrier_name="Manulife"),
            _coverage("Basic Life", "Enhanced", 500.0, carrier_name="Manulife"),
            _coverage("Dental Care", "Enhanced", 700.0, carrier_name="Manulife"),
        ],
        "planNotes": ["Dental recall every 9 months."],
    }


@pytest.fixture
def processed_document(quote_payload):
    document, _ = normalize_document(quote_payload)
    return document


@pytest.fixture
def legacy_document(legacy_payload):
    document, _ = normalize_document(legacy_payload)
    return document
