"""Prompt templates for query generation, summarization and market synthesis."""

from marketsense.storage.records import Requirement

QUERY_SYSTEM_PROMPT = (
    "You are an expert market researcher. You must generate exactly 5 search "
    "queries, no more and no less."
)

QUERY_USER_PROMPT = """Inputs:
- Industry: {industry_type}
- Problem Statement: {problem_statement}
- Proposed Solution: {proposed_solution}
- Key Features: {key_features}

Instructions:
Generate a JSON array of EXACTLY 5 search queries (no more, no fewer), each optimized for discovering:
- market trends
- demand validation
- competitors
- feature gaps
- industry benchmarks

Output format:
["query 1", "query 2", "query 3", "query 4", "query 5"]"""

SUMMARY_SYSTEM_PROMPT = "You are an expert summarizer of market research material."

SUMMARY_USER_PROMPT = """Create a detailed and comprehensive summary of the following content from {url}.

Guidelines:
1. Maintain all important factual information, data points, statistics, and key insights.
2. Preserve company names, product mentions, and specific industry terminology.
3. Include relevant market trends, competitive analysis, and business insights.
4. Keep any numerical data and percentages that provide context or support claims.
5. Organize the information logically with clear structure.
6. Focus only on information relevant to market analysis and business intelligence.
7. Ignore generic website elements, navigation instructions, or irrelevant content.
8. The summary should be around 30-40% of the original length but contain 90-95% of the important information.

Content to summarize:
{content}

Summary:"""

SYNTHESIS_SYSTEM_PROMPT = "You are acting as an expert Market Research Analyst."

SYNTHESIS_USER_PROMPT = """Based on the provided project details and research, create a comprehensive market analysis using the exact JSON structure requested.

Project Details:
Project Name: {project_name}
Company Name: {company_name}
Industry Type: {industry_type}
Problem Statement: {problem_statement}
Proposed Solution: {proposed_solution}
Key Features: {key_features}
Target Audience: {target_audience}

Research:
{research}

Instructions:
- Analyze the market potential for this product/service
- Identify relevant market trends and opportunities
- Research competitive landscape in this industry
- Ground every claim in the research above where it is available
- Do not invent specific statistics
- Keep each section concise (4-5 lines) and actionable
- Use bullet points where appropriate

Return a valid JSON object with this structure:

{{
  "market_trends": string describing 3-5 current trends in this market,
  "demand_insights": string with analysis of potential demand and customer needs,
  "top_competitors": string listing typical competitors in this space and their strengths,
  "market_gap_opportunity": string identifying the specific gap or opportunity this project addresses,
  "swot_analysis": string with brief SWOT analysis relevant to market position,
  "industry_benchmarks": string with 2-3 key performance indicators typical for this industry,
  "confidence_score": number (0-100) indicating confidence level of this analysis
}}"""

FALLBACK_RESEARCH = (
    "No web research is available for this requirement. Base the analysis on "
    "general knowledge of the {industry} industry and state clearly that it "
    "was not validated against current sources."
)


def _or_unspecified(value: str) -> str:
    return value.strip() or "Not specified"


def build_query_prompt(requirement: Requirement) -> str:
    return QUERY_USER_PROMPT.format(
        industry_type=_or_unspecified(requirement.industry_type),
        problem_statement=_or_unspecified(requirement.problem_statement),
        proposed_solution=_or_unspecified(requirement.proposed_solution),
        key_features=_or_unspecified(requirement.key_features),
    )


def build_summary_prompt(url: str, content: str) -> str:
    return SUMMARY_USER_PROMPT.format(url=url, content=content)


def build_synthesis_prompt(requirement: Requirement, research: str) -> str:
    return SYNTHESIS_USER_PROMPT.format(
        project_name=_or_unspecified(requirement.project_name),
        company_name=_or_unspecified(requirement.company_name),
        industry_type=_or_unspecified(requirement.industry_type),
        problem_statement=_or_unspecified(requirement.problem_statement),
        proposed_solution=_or_unspecified(requirement.proposed_solution),
        key_features=_or_unspecified(requirement.key_features),
        target_audience=_or_unspecified(requirement.target_audience),
        research=research,
    )


def build_fallback_research(requirement: Requirement) -> str:
    return FALLBACK_RESEARCH.format(industry=requirement.industry_type or "target")
