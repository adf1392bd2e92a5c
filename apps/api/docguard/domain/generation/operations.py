"""The three forgery-assessment generation operations."""

from __future__ import annotations

from docguard.domain.generation.flow import GenerationRequest
from docguard.domain.generation.schema import FieldSpec, Shape


GENERATE_FRAUD_REPORT = GenerationRequest(
    name="generate_fraud_report",
    input_shape=Shape.of(
        {
            "analysisResults": FieldSpec("string", description="The AI analysis results of the document."),
            "confidenceScore": FieldSpec(
                "number",
                description="The fraud confidence score indicating the likelihood of forgery.",
            ),
            "suspectAreas": FieldSpec(
                "string",
                description="The visually highlighted suspect areas on the document.",
            ),
        },
        name="GenerateFraudReportInput",
    ),
    output_shape=Shape.of(
        {"report": FieldSpec("string", description="A detailed report summarizing the fraud analysis.")},
        name="GenerateFraudReportOutput",
    ),
    template="""You are an AI expert specializing in generating fraud reports for documents.

You will use the provided analysis results, confidence score, and suspect areas to create a comprehensive fraud report.

Analysis Results: {{{analysisResults}}}
Confidence Score: {{{confidenceScore}}}
Suspect Areas: {{{suspectAreas}}}

Generate a detailed report summarizing these findings. Clearly indicate whether the document is likely genuine or forged, and highlight the potential risks associated with the document.
""",
)


SUMMARIZE_DOCUMENT_FINDINGS = GenerationRequest(
    name="summarize_document_findings",
    input_shape=Shape.of(
        {
            "fraudConfidenceScore": FieldSpec(
                "number",
                description="The overall confidence score indicating the likelihood of forgery (0-100).",
            ),
            "keyAreasOfConcern": FieldSpec(
                "string",
                description="Detailed description of the areas of the document where tampering is suspected.",
            ),
        },
        name="SummarizeDocumentFindingsInput",
    ),
    output_shape=Shape.of(
        {
            "summary": FieldSpec(
                "string",
                description=(
                    "A concise summary of the forgery detection results, including the overall "
                    "confidence score and key areas of concern."
                ),
            )
        },
        name="SummarizeDocumentFindingsOutput",
    ),
    template="""You are an AI assistant specializing in summarizing document forgery detection results.

Based on the following information, provide a concise summary (under 100 words) of the document's authenticity for a user. Include the overall confidence score and key areas of concern.

Fraud Confidence Score: {{{fraudConfidenceScore}}}
Key Areas of Concern: {{{keyAreasOfConcern}}}""",
)


EXPLAIN_CONFIDENCE_SCORE = GenerationRequest(
    name="explain_confidence_score",
    input_shape=Shape.of(
        {
            "confidenceScore": FieldSpec("number", description="The fraud confidence score (0-100)."),
            "factors": FieldSpec(
                "string_list",
                description=(
                    "A list of factors that contributed to the confidence score, e.g., text structure, "
                    "layout, fonts, image noise, metadata."
                ),
            ),
        },
        name="ExplainConfidenceScoreInput",
    ),
    output_shape=Shape.of(
        {
            "explanation": FieldSpec(
                "string",
                description=(
                    "A human-readable explanation of how the confidence score was calculated and "
                    "the contribution of each factor."
                ),
            )
        },
        name="ExplainConfidenceScoreOutput",
    ),
    template="""You are an AI assistant that explains fraud confidence scores for documents.

Based on the confidence score ({{confidenceScore}}) and the following contributing factors:
{{#each factors}}
- {{this}}
{{/each}}

Provide a concise explanation of how the confidence score was derived from these factors.
Explain the rationale behind the assessment in a way that is easy to understand for a non-expert user.
Be sure to include that higher confidence score represents higher likelihood of the document being fraudulent.
""",
)


OPERATIONS: dict[str, GenerationRequest] = {
    request.name: request
    for request in (GENERATE_FRAUD_REPORT, SUMMARIZE_DOCUMENT_FINDINGS, EXPLAIN_CONFIDENCE_SCORE)
}


def get_operation(name: str) -> GenerationRequest:
    try:
        return OPERATIONS[name]
    except KeyError:
        raise KeyError(f"unknown_operation:{name}") from None
