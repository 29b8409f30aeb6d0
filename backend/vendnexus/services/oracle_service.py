"""
Advisory Oracle - generative-model adapter

Wraps the hosted Gemini generateContent REST endpoint behind three async
operations (insight, price suggestion, chat) plus speech and image helpers.

Contract:
- Context is serialized deterministically before it leaves the process.
- Price suggestions must parse as {"suggestedPrice": number, "reasoning": string}
  or the caller gets an OracleFailure.
- No public operation raises. Every failure (missing API key, transport
  error, malformed payload) is logged and returned as a failure value or an
  apology string.
- The oracle is advisory only. Nothing here writes to the catalog or ledger.

The API key is read from the environment on every call, so a key exported
after startup is picked up and a missing key only disables this module.
"""

from __future__ import annotations

import base64
import json
import logging
import math
import os
import re
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

import httpx

from ..models import Product, SaleRecord
from ..money import to_cents, to_dollars
from .insight_context import build_price_context, serialize

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

INSIGHT_PROMPT = """You are the VendNexus AI Assistant, a specialized business analyst for a vending machine network.

Context Data:
- Machines: {machines}
- Inventory Summary: {inventory}
- Recent Sales (Last {sales_count}): {recent_sales}

User Query: {query}

Instructions:
1. Answer specifically based on the provided data.
2. Be concise but professional.
3. If asked about revenue, calculate it from the sales data provided.
4. If asked for recommendations, identify low stock items or high-margin products.
5. Do not hallucinate data not present in the context."""

PRICE_PROMPT = """You are a pricing analyst for a vending machine network.

Product and its sales history:
{context}

Units sold in this window: {units_sold}
Revenue in this window: ${revenue:.2f}

Suggest an optimal retail price for this product. Consider its cost, current
price, sales velocity and stock level. Keep the price above cost.
Respond with a JSON object: {{"suggestedPrice": number, "reasoning": string}}.
Keep the reasoning to two or three sentences."""

CHAT_SYSTEM_PROMPT = """You are VendNexus AI, an intelligent vending machine operations assistant.
You have access to real-time inventory, sales, and machine status.

Current System State:
{context}

Your goal is to help the owner optimize profits, manage stock, and fix issues.
If the user asks about expanding the business or market trends, use Google Search."""

IMAGE_PROMPT = (
    "A professional studio product photograph of {name} as sold in a vending machine, "
    "centered on a clean white background, soft lighting, no text."
)

PRICE_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "suggestedPrice": {"type": "NUMBER"},
        "reasoning": {"type": "STRING"},
    },
    "required": ["suggestedPrice", "reasoning"],
}

INSIGHT_THINKING_BUDGET = 2048
CHAT_THINKING_BUDGET = 4096
SPEECH_CHAR_LIMIT = 300

INSIGHT_EMPTY = "I couldn't analyze the data at this moment."
INSIGHT_FAILED = "Sorry, I encountered an error analyzing your business data."
CHAT_EMPTY = "I'm not sure how to respond to that."
CHAT_FAILED = "I'm having trouble connecting to the VendNexus network."
NOT_CONFIGURED = (
    "The VendNexus AI assistant is not configured. "
    "Set the {env} environment variable to enable AI features."
)


# ---------------------------------------------------------------------------
# Errors and results
# ---------------------------------------------------------------------------

class OracleError(Exception):
    """Base class for oracle failures. Never escapes a public operation."""


class OracleConfigError(OracleError):
    """The API key is missing."""


class OracleResponseError(OracleError):
    """Transport failure, non-2xx status, or a payload of the wrong shape."""


@dataclass(frozen=True)
class PriceSuggestion:
    suggested_price_cents: int
    reasoning: str

    def to_dict(self) -> dict:
        return {
            "suggested_price_cents": self.suggested_price_cents,
            "suggested_price": to_dollars(self.suggested_price_cents),
            "reasoning": self.reasoning,
        }


@dataclass(frozen=True)
class OracleFailure:
    """Typed failure value. kind is "configuration" or "response"."""
    reason: str
    kind: str = "response"

    def to_dict(self) -> dict:
        return {"error": self.reason, "kind": self.kind}


@dataclass(frozen=True)
class ChatReply:
    text: str
    audio: bytes | None = None


# ---------------------------------------------------------------------------
# Response shaping
# ---------------------------------------------------------------------------

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_price_suggestion(raw: str) -> PriceSuggestion:
    """
    Enforce the {suggestedPrice, reasoning} shape.

    Raises:
        OracleResponseError: not JSON, not an object, or a field is missing or mistyped
    """
    if not raw or not raw.strip():
        raise OracleResponseError("Empty price suggestion")

    text = _FENCE_RE.sub("", raw.strip())
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise OracleResponseError(f"Price suggestion is not JSON: {exc.msg}")

    if not isinstance(data, dict):
        raise OracleResponseError("Price suggestion must be a JSON object")

    price = data.get("suggestedPrice")
    reasoning = data.get("reasoning")

    if isinstance(price, bool) or not isinstance(price, (int, float)):
        raise OracleResponseError("suggestedPrice must be a number")
    if not math.isfinite(price) or price < 0:
        raise OracleResponseError("suggestedPrice must be a non-negative finite number")
    if not isinstance(reasoning, str):
        raise OracleResponseError("reasoning must be a string")

    return PriceSuggestion(suggested_price_cents=to_cents(price), reasoning=reasoning.strip())


def _first_candidate(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    candidates = payload.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        raise OracleResponseError("Response has no candidates")
    return candidates[0]


def response_text(payload: Mapping[str, Any]) -> str:
    """Concatenated text parts of the first candidate, skipping thought parts."""
    candidate = _first_candidate(payload)
    parts = (candidate.get("content") or {}).get("parts") or []
    return "".join(
        part.get("text", "")
        for part in parts
        if isinstance(part, dict) and not part.get("thought")
    ).strip()


def inline_data(payload: Mapping[str, Any]) -> tuple[str, str] | None:
    """(mime_type, base64 data) of the first inline-data part, if any."""
    candidate = _first_candidate(payload)
    for part in (candidate.get("content") or {}).get("parts") or []:
        blob = part.get("inlineData") if isinstance(part, dict) else None
        if blob and blob.get("data"):
            return blob.get("mimeType", "application/octet-stream"), blob["data"]
    return None


def grounding_sources(payload: Mapping[str, Any]) -> list[str]:
    candidate = _first_candidate(payload)
    chunks = (candidate.get("groundingMetadata") or {}).get("groundingChunks") or []
    return [c["web"]["uri"] for c in chunks if isinstance(c, dict) and (c.get("web") or {}).get("uri")]


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------

class AdvisoryOracle:
    """
    The three-operation oracle contract.

    Implementations must not raise from any of these methods. Tests substitute
    a fake; production uses GeminiOracle.
    """

    async def get_insight(self, query: str, snapshot: Mapping[str, Any]) -> str:
        raise NotImplementedError

    async def get_price_suggestion(
        self, product: Product, sales_window: Sequence[SaleRecord]
    ) -> PriceSuggestion | OracleFailure:
        raise NotImplementedError

    async def chat(
        self,
        history: Sequence[Mapping[str, str]],
        current_message: str,
        snapshot: Mapping[str, Any],
    ) -> ChatReply:
        raise NotImplementedError

    async def generate_speech(self, text: str) -> bytes | None:
        return None

    async def generate_product_image(self, name: str) -> str | None:
        return None


class GeminiOracle(AdvisoryOracle):
    """AdvisoryOracle over the Gemini REST API, using httpx."""

    def __init__(
        self,
        *,
        api_key_env: str = "API_KEY",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 60.0,
        reasoning_model: str = "gemini-3-pro-preview",
        pricing_model: str = "gemini-2.5-flash",
        speech_model: str = "gemini-2.5-flash-preview-tts",
        image_model: str = "gemini-2.5-flash-image",
        speech_voice: str = "Kore",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key_env = api_key_env
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.reasoning_model = reasoning_model
        self.pricing_model = pricing_model
        self.speech_model = speech_model
        self.image_model = image_model
        self.speech_voice = speech_voice
        self._transport = transport

    @classmethod
    def from_config(cls, config: Mapping[str, Any], **kwargs) -> "GeminiOracle":
        return cls(
            api_key_env=config.get("ORACLE_API_KEY_ENV", "API_KEY"),
            base_url=config.get("ORACLE_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"),
            timeout=config.get("ORACLE_TIMEOUT_SECONDS", 60.0),
            reasoning_model=config.get("ORACLE_REASONING_MODEL", "gemini-3-pro-preview"),
            pricing_model=config.get("ORACLE_PRICING_MODEL", "gemini-2.5-flash"),
            speech_model=config.get("ORACLE_SPEECH_MODEL", "gemini-2.5-flash-preview-tts"),
            image_model=config.get("ORACLE_IMAGE_MODEL", "gemini-2.5-flash-image"),
            speech_voice=config.get("ORACLE_SPEECH_VOICE", "Kore"),
            **kwargs,
        )

    # -- Transport --

    def _api_key(self) -> str:
        key = os.environ.get(self.api_key_env, "").strip()
        if not key:
            raise OracleConfigError(f"{self.api_key_env} is not set in the environment")
        return key

    async def _generate(self, model: str, body: dict) -> dict:
        """POST models/{model}:generateContent and return the decoded JSON body."""
        headers = {"x-goog-api-key": self._api_key(), "Content-Type": "application/json"}
        url = f"{self.base_url}/models/{model}:generateContent"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url, headers=headers, json=body)
        except httpx.HTTPError as exc:
            raise OracleResponseError(f"Request to {model} failed: {exc}") from exc

        if resp.status_code != 200:
            raise OracleResponseError(f"{model} returned HTTP {resp.status_code}: {resp.text[:200]}")

        try:
            payload = resp.json()
        except ValueError as exc:
            raise OracleResponseError(f"{model} returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise OracleResponseError(f"{model} returned an unexpected body")
        return payload

    def _not_configured(self) -> str:
        return NOT_CONFIGURED.format(env=self.api_key_env)

    # -- Operations --

    async def get_insight(self, query: str, snapshot: Mapping[str, Any]) -> str:
        sales = snapshot.get("recent_sales", [])
        prompt = INSIGHT_PROMPT.format(
            machines=serialize(snapshot.get("machines", [])),
            inventory=serialize(snapshot.get("inventory", [])),
            sales_count=len(sales),
            recent_sales=serialize(sales),
            query=query,
        )
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"thinkingConfig": {"thinkingBudget": INSIGHT_THINKING_BUDGET}},
        }

        try:
            payload = await self._generate(self.reasoning_model, body)
            return response_text(payload) or INSIGHT_EMPTY
        except OracleConfigError as e:
            logger.error("Insight unavailable: %s", e)
            return self._not_configured()
        except Exception as e:
            logger.error("Gemini insight error: %s", e)
            return INSIGHT_FAILED

    async def get_price_suggestion(
        self, product: Product, sales_window: Sequence[SaleRecord]
    ) -> PriceSuggestion | OracleFailure:
        context = build_price_context(product, sales_window)
        prompt = PRICE_PROMPT.format(
            context=serialize({"product": context["product"], "sales": context["sales"]}),
            units_sold=context["units_sold"],
            revenue=context["revenue"],
        )
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": PRICE_RESPONSE_SCHEMA,
            },
        }

        try:
            payload = await self._generate(self.pricing_model, body)
            return parse_price_suggestion(response_text(payload))
        except OracleConfigError as e:
            logger.error("Price suggestion unavailable: %s", e)
            return OracleFailure(reason=self._not_configured(), kind="configuration")
        except Exception as e:
            logger.error("Price suggestion failed for %s: %s", product.id, e)
            return OracleFailure(reason="Failed to generate suggestion.")

    async def chat(
        self,
        history: Sequence[Mapping[str, str]],
        current_message: str,
        snapshot: Mapping[str, Any],
    ) -> ChatReply:
        system = CHAT_SYSTEM_PROMPT.format(context=serialize(snapshot))
        contents = [{"role": "user", "parts": [{"text": f"System Instruction: {system}"}]}]
        contents.extend(
            {"role": turn["role"], "parts": [{"text": turn["text"]}]}
            for turn in history
        )
        contents.append({"role": "user", "parts": [{"text": current_message}]})
        body = {
            "contents": contents,
            "tools": [{"google_search": {}}],
            "generationConfig": {"thinkingConfig": {"thinkingBudget": CHAT_THINKING_BUDGET}},
        }

        try:
            payload = await self._generate(self.reasoning_model, body)
            text = response_text(payload) or CHAT_EMPTY
            sources = grounding_sources(payload)
        except OracleConfigError as e:
            logger.error("Chat unavailable: %s", e)
            return ChatReply(text=self._not_configured())
        except Exception as e:
            logger.error("Chat error: %s", e)
            return ChatReply(text=CHAT_FAILED)

        # Speech covers the head of the reply only
        audio = await self.generate_speech(text[:SPEECH_CHAR_LIMIT])

        if sources:
            text += "\n\nSources:\n" + "\n".join(sources)
        return ChatReply(text=text, audio=audio)

    async def generate_speech(self, text: str) -> bytes | None:
        """Raw PCM16 mono 24 kHz bytes, or None."""
        if not text.strip():
            return None
        body = {
            "contents": [{"parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {
                    "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": self.speech_voice}},
                },
            },
        }
        try:
            payload = await self._generate(self.speech_model, body)
            blob = inline_data(payload)
            if blob is None:
                return None
            return base64.b64decode(blob[1], validate=True)
        except Exception as e:
            logger.error("TTS error: %s", e)
            return None

    async def generate_product_image(self, name: str) -> str | None:
        """A data: URI for a generated product photo, or None."""
        body = {
            "contents": [{"parts": [{"text": IMAGE_PROMPT.format(name=name)}]}],
            "generationConfig": {"responseModalities": ["IMAGE"]},
        }
        try:
            payload = await self._generate(self.image_model, body)
            blob = inline_data(payload)
            if blob is None:
                return None
            mime_type, data = blob
            return f"data:{mime_type};base64,{data}"
        except Exception as e:
            logger.error("Image generation error: %s", e)
            return None
