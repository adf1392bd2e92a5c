"""Document analysis run: simulated score plus three narrative channels.

The score is sampled uniformly and the suspect areas are fixed placeholders;
there is no detector behind them. Only the narrative text comes from the
generation backend.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any

from docguard.domain.generation import GenerationClient, GenerationFlow
from docguard.domain.generation.operations import (
    EXPLAIN_CONFIDENCE_SCORE,
    GENERATE_FRAUD_REPORT,
    SUMMARIZE_DOCUMENT_FINDINGS,
)


logger = logging.getLogger(__name__)

DEFAULT_SCORE_RANGE = (40, 85)

SUSPECT_AREAS: tuple[dict[str, str], ...] = (
    {"top": "15%", "left": "50%", "width": "35%", "height": "8%"},
    {"top": "70%", "left": "20%", "width": "60%", "height": "10%"},
    {"top": "45%", "left": "75%", "width": "10%", "height": "5%"},
)

KEY_AREAS_OF_CONCERN = (
    "Inconsistencies in font type and size in the signature area, "
    "and pixel-level noise around the date field."
)
ANALYSIS_RESULTS = (
    "The document exhibits several red flags. The font in the main body does not match the font "
    "used in the signature block. There is evidence of digital manipulation around the date, with "
    "inconsistent pixel noise suggesting an edit. Metadata analysis shows the document was modified "
    "by a different software than the one it was allegedly created with."
)
SUSPECT_AREAS_TEXT = "Signature block, date field"
SCORE_FACTORS = ("text structure", "font analysis", "image noise", "metadata mismatch")

SUMMARY_FALLBACK = "An error occurred while generating the analysis summary."
REPORT_FALLBACK = "An error occurred while generating the full report."
EXPLANATION_FALLBACK = "An error occurred while explaining the score."


@dataclass(frozen=True)
class AnalysisOutcome:
    document_id: str
    confidence_score: int
    risk_level: str
    summary: str
    report: str
    explanation: str
    suspect_areas: tuple[dict[str, str], ...] = SUSPECT_AREAS
    failed_channels: tuple[str, ...] = field(default_factory=tuple)

    def to_payload(self) -> dict[str, Any]:
        return {
            "documentId": self.document_id,
            "confidenceScore": self.confidence_score,
            "riskLevel": self.risk_level,
            "summary": self.summary,
            "report": self.report,
            "explanation": self.explanation,
            "suspectAreas": [dict(area) for area in self.suspect_areas],
            "failedChannels": list(self.failed_channels),
        }


def simulate_confidence_score(
    rng: random.Random | None = None,
    low: int = DEFAULT_SCORE_RANGE[0],
    high: int = DEFAULT_SCORE_RANGE[1],
) -> int:
    if low > high:
        raise ValueError(f"invalid_score_range:{low}>{high}")
    return (rng or random).randint(low, high)


def risk_level(score: float) -> str:
    if score > 75:
        return "high"
    if score > 50:
        return "medium"
    return "low"


def describe_suspect_areas(areas: tuple[dict[str, str], ...] = SUSPECT_AREAS) -> list[str]:
    return [f"top: {area['top']}, left: {area['left']}" for area in areas]


async def run_document_analysis(
    client: GenerationClient,
    *,
    document_id: str,
    score: int | None = None,
    rng: random.Random | None = None,
    score_range: tuple[int, int] = DEFAULT_SCORE_RANGE,
) -> AnalysisOutcome:
    if score is None:
        score = simulate_confidence_score(rng, *score_range)

    channels = (
        (
            "summary",
            GenerationFlow(SUMMARIZE_DOCUMENT_FINDINGS, client),
            {"fraudConfidenceScore": score, "keyAreasOfConcern": KEY_AREAS_OF_CONCERN},
            SUMMARY_FALLBACK,
        ),
        (
            "report",
            GenerationFlow(GENERATE_FRAUD_REPORT, client),
            {
                "analysisResults": ANALYSIS_RESULTS,
                "confidenceScore": score,
                "suspectAreas": SUSPECT_AREAS_TEXT,
            },
            REPORT_FALLBACK,
        ),
        (
            "explanation",
            GenerationFlow(EXPLAIN_CONFIDENCE_SCORE, client),
            {"confidenceScore": score, "factors": list(SCORE_FACTORS)},
            EXPLANATION_FALLBACK,
        ),
    )

    results = await asyncio.gather(
        *(flow.run(data) for _, flow, data, _ in channels),
        return_exceptions=True,
    )

    texts: dict[str, str] = {}
    failed: list[str] = []
    for (channel, flow, _, fallback), result in zip(channels, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            logger.error("analysis %s channel %s failed: %s", document_id, channel, result)
            texts[channel] = fallback
            failed.append(channel)
            continue
        texts[channel] = result[channel]

    logger.info(
        "analysis %s finished score=%d failed_channels=%s",
        document_id,
        score,
        failed or "none",
    )
    return AnalysisOutcome(
        document_id=document_id,
        confidence_score=score,
        risk_level=risk_level(score),
        summary=texts["summary"],
        report=texts["report"],
        explanation=texts["explanation"],
        failed_channels=tuple(failed),
    )
