"""
System prompt and report context for the data chat.
"""

from typing import Iterable, Dict, List

from config.llm_models import get_task_config

EXCERPT_LIMIT = get_task_config("data_chat")["context_excerpt_limit"]

DATA_CHAT_SYSTEM_PROMPT = """You are a knowledgeable financial analyst assistant specializing in US banking regulatory reports and financial metrics.

You help users understand:
- Call Reports, UBPR, and FRY-9C filings
- Capital adequacy metrics (CET1, Tier 1, Total Capital ratios)
- Liquidity metrics (LCR, NSFR, Loan-to-Deposit ratio)
- Profitability metrics (NIM, ROA, ROE, Efficiency Ratio)
- Asset quality metrics (NPL ratio, ACL Coverage)
- Regulatory compliance requirements

When answering questions:
1. Be precise and cite specific metrics when available
2. Explain regulatory thresholds and their significance
3. Provide context about trends and peer comparisons
4. Highlight any areas of concern or strength
5. Reference the specific reports when applicable

Keep responses concise but comprehensive. Use bullet points for clarity."""


def build_report_context(reports: Iterable, insights_by_report: Dict[str, List]) -> str:
    """
    Render selected reports and their insights as a context block.

    Args:
        reports: IngestedReport rows
        insights_by_report: report id -> ReportInsight rows

    Returns:
        Context text to append to the system prompt, or "" when there are no reports
    """
    reports = list(reports)
    if not reports:
        return ""

    parts = ["\n\nCONTEXT FROM INGESTED REPORTS:\n"]
    for report in reports:
        parts.append(f"\n--- Report: {report.name} ({report.report_type}) ---\n")
        parts.append(f"Institution: {report.institution_name or 'Unknown'}\n")
        parts.append(f"Period: {report.reporting_period or 'Not specified'}\n")

        report_insights = insights_by_report.get(report.id, [])
        if report_insights:
            parts.append("\nKey Insights:\n")
            for insight in report_insights:
                parts.append(f"- {insight.title}: {insight.content}\n")

        if report.raw_content:
            parts.append(f"\nReport Content (excerpt):\n{report.raw_content[:EXCERPT_LIMIT]}\n")

    return "".join(parts)


def build_chat_system_prompt(report_context: str) -> str:
    return f"{DATA_CHAT_SYSTEM_PROMPT}{report_context}"
