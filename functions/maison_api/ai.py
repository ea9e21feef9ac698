"""
AI features behind one client: building-code Q&A, the site assistant chat,
quote analysis and plan estimates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Optional, Protocol, Sequence

from llm import gemini, prompts

logger = logging.getLogger(__name__)

BUILDING_CODE_DISCLAIMER = (
    "Ces informations sont fournies à titre indicatif seulement. "
    "Consultez un professionnel ou votre municipalité pour confirmation."
)


class AiClient(Protocol):
    def building_code(self, question: str, history: Sequence[dict] = ()) -> dict:
        ...

    def chat_stream(self, messages: Sequence[dict]) -> Iterator[str]:
        ...

    def analyze_quotes(
        self,
        trade_name: str,
        trade_description: str,
        documents: Sequence[tuple[str, bytes, str]],
        planned_budget: Optional[float] = None,
    ) -> str:
        ...

    def analyze_plan(
        self, documents: Sequence[tuple[str, bytes, str]], options: Mapping[str, Any]
    ) -> dict:
        ...


def _split_history(messages: Sequence[dict]) -> tuple[list[dict], str]:
    """The last user message is the query; everything before it is history."""
    if not messages:
        raise ValueError("At least one message is required")
    *history, last = messages
    return list(history), last.get("content", "")


def building_code_answer(text: str) -> dict:
    """
    Normalise the model's answer to {type, message, result?, disclaimer}.
    Answers that are not valid JSON are returned as a plain clarification.
    """
    parsed = gemini.parse_json_response(text)
    if not parsed or parsed.get("type") not in ("clarification", "answer"):
        return {"type": "clarification", "message": text.strip()}
    answer = {"type": parsed["type"], "message": parsed.get("message") or ""}
    if parsed["type"] == "answer":
        answer["result"] = parsed.get("result") or {}
        answer["disclaimer"] = BUILDING_CODE_DISCLAIMER
    return answer


class InvalidEstimateError(ValueError):
    """The model's plan estimate is not a JSON object."""


def plan_estimate_answer(text: str) -> dict:
    parsed = gemini.parse_json_response(text)
    if parsed is None:
        raise InvalidEstimateError("Estimation illisible: réponse JSON attendue")
    return parsed


@dataclass
class GeminiAiClient:
    api_key: str
    model: str = gemini.DEFAULT_MODEL

    def building_code(self, question: str, history: Sequence[dict] = ()) -> dict:
        text = gemini.call_predict(
            question,
            self.api_key,
            system_instruction=prompts.BUILDING_CODE_SYSTEM_PROMPT,
            history=history,
            model=self.model,
        )
        return building_code_answer(text)

    def chat_stream(self, messages: Sequence[dict]) -> Iterator[str]:
        history, query = _split_history(messages)
        return gemini.stream_predict(
            query,
            self.api_key,
            system_instruction=prompts.CHAT_ASSISTANT_SYSTEM_PROMPT,
            history=history,
            model=self.model,
        )

    def analyze_quotes(
        self,
        trade_name: str,
        trade_description: str,
        documents: Sequence[tuple[str, bytes, str]],
        planned_budget: Optional[float] = None,
    ) -> str:
        prompt = prompts.make_quote_analysis_prompt(
            trade_name, trade_description, len(documents), planned_budget
        )
        return gemini.call_predict_with_documents(
            prompt,
            documents,
            self.api_key,
            system_instruction=prompts.QUOTE_ANALYSIS_SYSTEM_PROMPT,
            model=self.model,
        )

    def analyze_plan(
        self, documents: Sequence[tuple[str, bytes, str]], options: Mapping[str, Any]
    ) -> dict:
        prompt = prompts.make_plan_analysis_prompt(len(documents), **options)
        if documents:
            text = gemini.call_predict_with_documents(
                prompt,
                documents,
                self.api_key,
                system_instruction=prompts.PLAN_ANALYSIS_SYSTEM_PROMPT,
                model=self.model,
            )
        else:
            text = gemini.call_predict(
                prompt,
                self.api_key,
                system_instruction=prompts.PLAN_ANALYSIS_SYSTEM_PROMPT,
                model=self.model,
            )
        return plan_estimate_answer(text)


@dataclass
class StubAiClient:
    """Canned answers for local runs without an API key, and for tests."""

    building_code_text: str = (
        '{"type": "clarification", "message": "Pouvez-vous préciser le contexte?"}'
    )
    chat_chunks: list[str] = field(default_factory=lambda: ["Bonjour", "!"])
    analysis: str = "## Analyse\n\nAucune soumission analysée."
    plan_estimate_text: str = '{"extraction": {"categories": []}, "totaux": {}}'
    calls: list[tuple[str, tuple]] = field(default_factory=list)

    def building_code(self, question: str, history: Sequence[dict] = ()) -> dict:
        self.calls.append(("building_code", (question, tuple(history))))
        return building_code_answer(self.building_code_text)

    def chat_stream(self, messages: Sequence[dict]) -> Iterator[str]:
        _split_history(messages)
        self.calls.append(("chat", tuple(m.get("content") for m in messages)))
        return iter(list(self.chat_chunks))

    def analyze_quotes(
        self,
        trade_name: str,
        trade_description: str,
        documents: Sequence[tuple[str, bytes, str]],
        planned_budget: Optional[float] = None,
    ) -> str:
        self.calls.append(
            ("analyze_quotes", (trade_name, tuple(d[0] for d in documents)))
        )
        return self.analysis

    def analyze_plan(
        self, documents: Sequence[tuple[str, bytes, str]], options: Mapping[str, Any]
    ) -> dict:
        self.calls.append(("analyze_plan", (tuple(d[0] for d in documents), dict(options))))
        return plan_estimate_answer(self.plan_estimate_text)
