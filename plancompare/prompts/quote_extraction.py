"""Prompt for structured extraction of group-benefits quote documents."""

from typing import Dict, List, Union

from plancompare.schemas.quote import COVERAGE_TYPES, DocumentCategory

PROMPT_VERSION = "2025.2"

# benefitDetails keys the model must populate per coverage type
REQUIRED_BENEFIT_DETAILS: Dict[str, List[str]] = {
    "Term Life": ["schedule", "maximum", "reduction", "terminationAge"],
    "Basic Life": ["schedule", "maximum", "nonEvidenceMaximum", "reduction", "terminationAge"],
    "AD&D": ["schedule", "maximum", "terminationAge"],
    "Dependent Life": ["spouseAmount", "childAmount", "terminationAge"],
    "Critical Illness": ["benefitAmount", "coveredConditions", "terminationAge"],
    "LTD": ["formula", "maximum", "nonEvidenceMaximum", "eliminationPeriod", "benefitPeriod", "definitionOfDisability", "taxable"],
    "STD": ["formula", "maximum", "nonEvidenceMaximum", "eliminationPeriod", "benefitPeriod", "taxable"],
    "Extended Healthcare": [
        "deductible", "coinsurance", "drugCard", "paramedicalMaximum", "visionCare",
        "outOfCountry", "livesSingle", "premiumPerSingle", "livesFamily", "premiumPerFamily",
    ],
    "Dental Care": [
        "deductible", "basicCoinsurance", "majorCoinsurance", "orthodonticCoinsurance",
        "annualMaximum", "recallFrequency", "feeGuide",
        "livesSingle", "premiumPerSingle", "livesFamily", "premiumPerFamily",
    ],
    "Vision": ["eyeExams", "glassesMaximum", "frequency"],
    "EAP": ["provider", "services"],
    "Prescription Drugs": ["coinsurance", "dispensingFeeCap", "formulary", "drugCard"],
    "Paramedical": ["practitioners", "perPractitionerMaximum", "coinsurance"],
    "Health Spending Account": ["annualAllocation", "adminFee"],
    "HSA": ["annualAllocation", "adminFee"],
}

NOT_SPECIFIED = "Details not specified in this financial summary"

QUOTE_EXTRACTION_PROMPT = """You are a meticulous data extraction engine for a Canadian group benefits brokerage. Your job is to locate the main financial summary table of an insurance quote document (for example "Renewal Rate Illustration Summary", "Cost Summary" or "Marketing Results") and convert it into one JSON object. Financial accuracy comes first; descriptive benefit details come second.

## TASK
1. Decide the document context: a Renewal (take figures from the RENEWAL, PROPOSED or REQUIRED columns), a new-business Quote or Proposal (take the main proposed columns), or a multi-carrier Marketing Summary.
2. Find the table listing benefits down the rows and plan options or carriers across the columns. It is the source of truth. When several summary tables exist, prefer the later, consolidated one.
3. Emit one coverage entry per benefit row per plan option.

## TABLE NORMALIZATION RULES
- "RENEWAL RATE", "RENEWAL PREMIUM" and "Required Rate" columns feed unitRate, premium and monthlyPremium.
- "CURRENT RATE" and "CURRENT PREMIUM" columns are historical. Never use them for the primary premium fields of a renewal.
- "Employee Term Life", "Basic Life" and similar rows normalize to "Basic Life".
- "Healthcare", "EHC" and "Extended Health" normalize to "Extended Healthcare".
- Every other benefit name normalizes to one value of the COVERAGE TYPES list.

## RESPONSE FORMAT (MANDATORY)
Return a SINGLE JSON object with EXACTLY three top-level keys and nothing else:
{{
    "metadata": {{ ... }},
    "coverages": [ ... ],
    "planNotes": [ {{"note": "..."}} ]
}}
Do not add any other top-level key. Do not wrap the object in prose.

## METADATA OBJECT
- "documentType", "clientName", "carrierName", "effectiveDate", "quoteDate", "policyNumber": strings.
- "planOptionName": the first or primary plan option.
- "totalProposedMonthlyPlanPremium": number, grand total of the primary plan option.
- "planOptionTotals": object mapping every plan option name to its total monthly premium (number). REQUIRED when the document has more than one plan option.
- "rateGuarantees": object mapping coverage type (or "All") to the guarantee DURATION ONLY, e.g. "12 months" or "28/16 months". Never copy the full terms.
- "highLevelOverview": array with one row per plan option: {{"carrierName", "planOption", "totalMonthlyPremium", "rateGuarantee", "pooledBenefitsSubtotal", "experienceRatedSubtotal", "keyHighlights"}}.
- "granularBreakdown": array with one row per benefit: {{"benefitCategory", "benefitType", "carrierData": [{{"carrierName", "planOption", "included", "volume", "unitRate", "monthlyPremium", "coverageDetails"}}]}}.

## COVERAGES ARRAY
A flat list; one object per benefit row per plan option, with these keys:
- "coverageType": one value from the COVERAGE TYPES list, verbatim.
- "carrierName": string.
- "planOptionName": string, identical to the name used in "planOptionTotals" and "highLevelOverview".
- "monthlyPremium": number from the primary premium column.
- "premium": number, IDENTICAL to "monthlyPremium".
- "unitRate": number. "unitRateBasis": string such as "per $1,000", "per $10 of benefit", "per employee", "per single/family".
- "volume": number. "lives": number. Use 0 when the table leaves a numeric cell blank.
- "benefitDetails": object holding the keys listed under BENEFIT DETAILS for that coverage type.
All numeric fields MUST be JSON numbers, never strings and never null. Strip currency symbols and thousands separators.

## EXTENDED HEALTHCARE AND DENTAL CARE FAMILY PREMIUMS
- With separate Single and Family sub-rows, fill "livesSingle", "premiumPerSingle", "livesFamily", "premiumPerFamily" in benefitDetails, where premiumPerSingle and premiumPerFamily are the per-certificate monthly premiums.
- With only unit rates shown (e.g. "$42.89/single"), the per-certificate premium equals the rate.
- (premiumPerSingle x livesSingle) + (premiumPerFamily x livesFamily) must equal monthlyPremium for that coverage.

## COVERAGE TYPES
{coverage_types}

## BENEFIT DETAILS
Populate these keys when the document states them. When a document is a financial summary without plan design pages, use "{not_specified}" instead of null. Never trade financial accuracy for these details.
{benefit_details}

## FINAL SELF-CHECK
Before answering, verify:
1. The sum of monthlyPremium across coverages of each plan option equals that option's entry in planOptionTotals and the table's grand total.
2. premium equals monthlyPremium on every coverage.
3. Family tier arithmetic holds for Extended Healthcare and Dental Care.
4. Rate guarantees contain durations only.
5. For a Renewal, premiums come from the renewal columns, not the current ones.
6. Every coverageType is one of the COVERAGE TYPES values.
7. The root object has exactly the keys metadata, coverages and planNotes.

## DOCUMENT
File name: {file_name}
Document category: {category}
Prompt version: {version}

Here's the document content to analyze:

{document_text}
"""


def _render_benefit_details() -> str:
    return "\n".join(
        f"- {coverage_type}: {', '.join(keys)}"
        for coverage_type, keys in REQUIRED_BENEFIT_DETAILS.items()
    )


def build_quote_prompt(
    extracted_text: str,
    file_name: str,
    category: Union[DocumentCategory, str] = DocumentCategory.CURRENT,
) -> str:
    """Render the extraction prompt for one document.

    Args:
        extracted_text: Text returned by the extraction service
        file_name: Original upload name, used as document identity
        category: Category the user assigned to the upload

    Returns:
        The complete prompt text
    """
    category_value = category.value if isinstance(category, DocumentCategory) else str(category)
    return QUOTE_EXTRACTION_PROMPT.format(
        coverage_types=", ".join(f'"{value}"' for value in COVERAGE_TYPES),
        not_specified=NOT_SPECIFIED,
        benefit_details=_render_benefit_details(),
        file_name=file_name,
        category=category_value,
        version=PROMPT_VERSION,
        document_text=extracted_text,
    )
