"""Cross-paper analysis with an OpenAI chat model."""

import json
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import openai

from .errors import AnalysisError

logger = logging.getLogger(__name__)

ANALYSIS_SEPARATOR = "---ANALYSIS---"

SYSTEM_PROMPT = (
    "You are an expert research analyst specializing in scientific literature "
    "review. Provide comprehensive, structured analysis of research papers "
    "focusing on themes, gaps, insights, and future directions. Use clear "
    "formatting with headers and bullet points."
)

CHART_KEYS = [
    "publicationYears",
    "studyTypes",
    "researchThemes",
    "sampleSizes",
    "qualityScores",
    "geographicRegions",
]


@dataclass
class AnalysisResult:
    """Chart data and written analysis extracted from a model response."""

    chart_data: Optional[Dict[str, Any]]
    analysis: str


def parse_analysis_response(raw_response: str) -> AnalysisResult:
    """
    Split a model response into its JSON chart data and its prose analysis.

    The expected layout is a JSON object holding a ``chartData`` key, the
    separator line ``---ANALYSIS---`` and then the analysis text. Any other
    layout, or JSON that does not decode, gives no chart data and the raw
    response as the analysis.
    """
    parts = raw_response.split(ANALYSIS_SEPARATOR)
    if len(parts) != 2:
        return AnalysisResult(chart_data=None, analysis=raw_response)

    json_part, analysis_part = parts[0].strip(), parts[1].strip()

    match = re.search(r"\{[\s\S]*\}", json_part)
    if not match:
        return AnalysisResult(chart_data=None, analysis=raw_response)

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.error(f"Error parsing analysis response: {e}")
        return AnalysisResult(chart_data=None, analysis=raw_response)

    chart_data = data.get("chartData") if isinstance(data, dict) else None
    return AnalysisResult(chart_data=chart_data, analysis=analysis_part)


def build_analysis_prompt(papers: Sequence[Dict[str, Any]]) -> str:
    """Describe the papers and the expected response layout to the model."""
    summaries = []
    for index, paper in enumerate(papers, start=1):
        lines = [
            f"**Paper {index}:**",
            f"- **Title**: {paper.get('title', '')}",
            f"- **Authors**: {', '.join(paper.get('authors') or [])}",
            f"- **Journal**: {paper.get('journal', '')} ({paper.get('pub_date') or 'N/A'})",
            f"- **PMID**: {paper.get('pmid', '')}",
            f"- **Abstract**: {paper.get('abstract', '')}",
        ]
        if paper.get("tags"):
            lines.append(f"- **Tags**: {', '.join(paper['tags'])}")
        summaries.append("\n".join(lines))

    return (
        f"Analyze the following {len(papers)} research papers.\n\n"
        f"Start your response with a JSON object of the form "
        f'{{"chartData": {{...}}}} with count lists under the keys '
        f"{', '.join(CHART_KEYS)}. Then write a line containing only "
        f"{ANALYSIS_SEPARATOR} followed by a written analysis covering themes, "
        f"research gaps, key insights and future directions.\n\n"
        + "\n---\n".join(summaries)
    )


class PaperAnalyzer:
    """Runs the cross-paper analysis through the OpenAI chat API."""

    def __init__(
        self,
        client: Optional[Any] = None,
        model: str = "gpt-4o",
        max_tokens: int = 4000,
    ):
        self._client = client
        self.model = model
        self.max_tokens = max_tokens

    @property
    def client(self) -> Any:
        if self._client is None:
            if not os.getenv("OPENAI_API_KEY"):
                raise AnalysisError(
                    "OpenAI API key not configured. Set OPENAI_API_KEY environment "
                    "variable."
                )
            self._client = openai.OpenAI()
        return self._client

    def analyze(self, papers: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Analyze a set of saved papers.

        Args:
            papers: Paper dictionaries as stored in a project

        Returns:
            Dictionary with analysis, chart_data, paper_count, model and
            timestamp

        Raises:
            ValueError: If no papers are given
            AnalysisError: If the model cannot be called or returns nothing
        """
        if not papers:
            raise ValueError("No papers provided")

        logger.info(f"Analyzing {len(papers)} papers with {self.model}")
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_analysis_prompt(papers)},
                ],
                max_tokens=self.max_tokens,
                temperature=0.3,
            )
        except openai.OpenAIError as e:
            raise AnalysisError(f"Failed to analyze papers: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise AnalysisError("No analysis generated")

        result = parse_analysis_response(content)
        return {
            "analysis": result.analysis,
            "chart_data": result.chart_data,
            "paper_count": len(papers),
            "model": self.model,
            "timestamp": datetime.now().isoformat(),
        }
