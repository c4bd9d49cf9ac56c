"""LLM link-classification service.

:class:`LinkClassifier` sends one batch of links to the chat model and
returns the raw per-index classifications.  Correlating those results
with the input links (and failing open when the call errors) is the
ranker's job, see :func:`govscout.scraper.ranker.rank_links`.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from govscout.llm import get_llm, invoke_with_retry, parse_json_response
from govscout.scraper.errors import ClassificationError
from govscout.scraper.models import ExtractedLink

DEFAULT_PRIORITY_KEYWORDS: tuple[str, ...] = (
    "ACFR",
    "Annual Comprehensive Financial Report",
    "Budget",
    "Finance",
    "Finance Director",
    "CFO",
    "Treasurer",
    "Procurement",
    "RFP",
    "Request for Proposal",
    "Bid",
    "Contract",
    "Capital",
    "Project",
    "Infrastructure",
)

_CATEGORY_GUIDE = """\
CATEGORIES:
- budget: Budget documents, financial reports, ACFR, comprehensive annual financial reports
- finance: Finance department pages, treasurer, CFO, controller contacts
- procurement: RFPs, RFQs, bids, solicitations, procurement portals, vendor registration
- contact: Contact pages, staff directories, department contacts
- meeting: Meeting agendas, minutes, board meetings, council meetings, public hearings
- policy: Policies, ordinances, resolutions, codes, bylaws
- project: Capital improvement projects, infrastructure initiatives, construction projects
- department: General department landing pages
- document: PDF downloads, document libraries, forms
- other: Navigation links, social media, login pages, or irrelevant content"""

_SCORING_GUIDE = """\
SCORING GUIDELINES:
- 0.9-1.0: Direct match to priority keywords (e.g., "2024 Budget", "ACFR", "Finance Director")
- 0.7-0.9: Highly relevant to procurement/finance (e.g., "Purchasing Department", "Capital Projects")
- 0.5-0.7: Potentially valuable (e.g., "Board of Directors", "Public Documents")
- 0.3-0.5: Marginally relevant (e.g., general department pages)
- 0.0-0.3: Not relevant (e.g., social media, login, news, careers)"""

_CONTEXT_PROMPT_CHARS = 200


class LinkClassifier:
    """Classify batches of links with a LangChain chat model.

    Args:
        llm: A LangChain chat model (anything with ``.invoke(messages)``).
            Defaults to :func:`govscout.llm.get_llm` in JSON mode, created
            on first use.
        priority_keywords: Vocabulary the model should treat as high value.
    """

    def __init__(
        self,
        llm: Any = None,
        priority_keywords: Optional[Sequence[str]] = None,
    ) -> None:
        self._llm = llm
        self.priority_keywords = list(priority_keywords or DEFAULT_PRIORITY_KEYWORDS)

    @property
    def llm(self) -> Any:
        if self._llm is None:
            self._llm = get_llm(temperature=0.2, json_mode=True)
        return self._llm

    def system_prompt(self) -> str:
        keywords = "\n".join(f"- {k}" for k in self.priority_keywords)
        return (
            "You are a link classification expert for government and public sector websites.\n"
            "Your task is to rank links by their relevance to finding high-value government information.\n\n"
            "PRIORITY KEYWORDS (links containing or related to these are HIGH value):\n"
            f"{keywords}\n\n"
            f"{_CATEGORY_GUIDE}\n\n"
            f"{_SCORING_GUIDE}\n\n"
            "Analyze each link's URL, anchor text, and surrounding context to determine relevance.\n\n"
            "Respond with valid JSON."
        )

    @staticmethod
    def user_prompt(links: Sequence[ExtractedLink]) -> str:
        entries = "\n".join(
            f"[{idx}] URL: {link.url}\n"
            f"    Anchor: {link.anchor_text}\n"
            f"    Context: {link.context[:_CONTEXT_PROMPT_CHARS]}\n"
            for idx, link in enumerate(links)
        )
        return (
            f"Rank these {len(links)} links by relevance to government procurement, "
            "budget, and finance information:\n\n"
            f"{entries}\n"
            'Return a JSON object of the form {"rankedLinks": [{"index": <int>, '
            '"relevanceScore": <0-1>, "category": <category>, "rationale": <short text>}]} '
            "with one entry per link."
        )

    def classify(self, links: Sequence[ExtractedLink]) -> List[Dict[str, Any]]:
        """Return ``[{index, relevance_score, category, rationale}, …]`` for *links*.

        Indices refer to positions within *links*.  Validation of indices,
        scores and categories is left to the caller.

        Raises:
            ClassificationError: If the model reply is not the expected JSON.
            Exception: Provider errors that survive the retry policy.
        """
        if not links:
            return []

        from langchain_core.messages import HumanMessage, SystemMessage

        messages = [
            SystemMessage(content=self.system_prompt()),
            HumanMessage(content=self.user_prompt(links)),
        ]
        response = invoke_with_retry(lambda: self.llm.invoke(messages), "link ranking")

        try:
            payload = parse_json_response(response)
        except ValueError as exc:
            raise ClassificationError(f"Classifier returned invalid JSON: {exc}") from exc

        entries = payload.get("rankedLinks") if isinstance(payload, dict) else None
        if not isinstance(entries, list):
            raise ClassificationError("Classifier reply has no 'rankedLinks' array.")

        results: List[Dict[str, Any]] = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            results.append(
                {
                    "index": entry.get("index"),
                    "relevance_score": entry.get("relevanceScore", entry.get("relevance_score")),
                    "category": entry.get("category"),
                    "rationale": entry.get("rationale") or "",
                }
            )
        return results
