# Overview: Per-process advisory UI state: price-suggestion popup, chat transcript and smart reorder.

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence

import numpy as np

from ..models import ChatMessage, Machine, Product, SaleRecord
from ..time_utils import now_ms
from .insight_context import build_snapshot
from .oracle_service import AdvisoryOracle, ChatReply, OracleFailure, PriceSuggestion

logger = logging.getLogger(__name__)

PCM_SAMPLE_RATE = 24_000
PCM_CHANNELS = 1
PCM16_SCALE = 32768.0

GREETING = (
    "Hello! I am your VendNexus business assistant. "
    "Ask me about inventory, sales trends, or profit analysis."
)
REORDER_PROMPT = (
    "Analyze the current inventory levels. Suggest reorder quantities for items "
    "below minimum quantity. Format as a bulleted list."
)


class PriceSuggestionStateError(Exception):
    """Raised for a popup transition the current state does not allow."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class PopupState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class PriceSuggestionPopup:
    """
    IDLE -> LOADING -> READY | FAILED, and dismiss() back to IDLE from anywhere.

    Every request takes a fresh token. A response is only accepted if its
    token is still current and the popup is still LOADING, so a request that
    was superseded or dismissed while in flight is dropped on arrival.
    Nothing here writes the catalog; apply() hands the price back to the caller.
    """

    def __init__(self) -> None:
        self.state = PopupState.IDLE
        self.product_id: str | None = None
        self.suggestion: PriceSuggestion | None = None
        self.failure: OracleFailure | None = None
        self._token = 0

    def begin(self, product_id: str) -> int:
        if self.state in (PopupState.READY, PopupState.FAILED):
            raise PriceSuggestionStateError(
                "Dismiss the current suggestion before requesting another",
                details={"state": self.state.value},
            )
        self._token += 1
        self.state = PopupState.LOADING
        self.product_id = product_id
        self.suggestion = None
        self.failure = None
        return self._token

    def resolve(self, token: int, result: PriceSuggestion | OracleFailure) -> bool:
        if token != self._token or self.state != PopupState.LOADING:
            logger.info("Discarding superseded price suggestion (token %d)", token)
            return False

        if isinstance(result, PriceSuggestion):
            self.state = PopupState.READY
            self.suggestion = result
        else:
            self.state = PopupState.FAILED
            self.failure = result
        return True

    async def request(
        self,
        oracle: AdvisoryOracle,
        product: Product,
        sales_window: Sequence[SaleRecord],
    ) -> dict:
        token = self.begin(product.id)
        result = await oracle.get_price_suggestion(product, sales_window)
        self.resolve(token, result)
        return self.to_dict()

    def apply(self) -> dict:
        """Close the popup and return the price to save."""
        if self.state != PopupState.READY or self.suggestion is None:
            raise PriceSuggestionStateError(
                "No suggestion is ready to apply",
                details={"state": self.state.value},
            )
        applied = {
            "product_id": self.product_id,
            "price_cents": self.suggestion.suggested_price_cents,
        }
        self.dismiss()
        return applied

    def dismiss(self) -> None:
        self._token += 1
        self.state = PopupState.IDLE
        self.product_id = None
        self.suggestion = None
        self.failure = None

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "product_id": self.product_id,
            "suggestion": self.suggestion.to_dict() if self.suggestion else None,
            "error": self.failure.reason if self.failure else None,
        }


def decode_pcm16(audio: bytes, channels: int = PCM_CHANNELS) -> np.ndarray:
    """
    Little-endian PCM16 bytes to float32 samples in [-1, 1).

    Returns shape (frames,) for mono, (frames, channels) otherwise.

    Raises:
        ValueError: byte length is not a whole number of frames
    """
    frame_bytes = 2 * channels
    if len(audio) % frame_bytes:
        raise ValueError(f"PCM16 payload of {len(audio)} bytes is not a whole number of frames")

    samples = np.frombuffer(audio, dtype="<i2").astype(np.float32) / PCM16_SCALE
    if channels == 1:
        return samples
    return samples.reshape(-1, channels)


@dataclass
class ChatSession:
    """Transcript of one assistant conversation; starts with the model greeting."""
    messages: list[ChatMessage] = field(default_factory=list)
    last_audio: np.ndarray | None = None
    _ids: Any = field(default_factory=lambda: itertools.count(1), repr=False)

    def __post_init__(self) -> None:
        if not self.messages:
            self.messages.append(self._message("model", GREETING))

    def _message(self, role: str, text: str, has_audio: bool = False) -> ChatMessage:
        return ChatMessage(
            id=str(next(self._ids)),
            role=role,
            text=text,
            timestamp=now_ms(),
            has_audio=has_audio,
        )

    def history(self) -> list[dict]:
        return [m.to_history() for m in self.messages]

    async def send(
        self, oracle: AdvisoryOracle, text: str, snapshot: Mapping[str, Any]
    ) -> ChatMessage:
        """
        Append the user turn, ask the oracle with the prior history, append its reply.

        Audio that fails to decode is logged and dropped; the text reply stands.

        Raises:
            ValueError: blank message
        """
        if not text or not text.strip():
            raise ValueError("Message must not be blank")

        prior = self.history()
        self.messages.append(self._message("user", text))

        reply: ChatReply = await oracle.chat(prior, text, snapshot)

        samples = None
        if reply.audio:
            try:
                samples = decode_pcm16(reply.audio)
            except ValueError as e:
                logger.warning("Audio decode failed, keeping text reply: %s", e)

        self.last_audio = samples
        message = self._message("model", reply.text, has_audio=samples is not None)
        self.messages.append(message)
        return message

    def reset(self) -> None:
        self.messages = []
        self.last_audio = None
        self._ids = itertools.count(1)
        self.__post_init__()

    def to_dict(self) -> dict:
        return {"messages": [m.to_dict() for m in self.messages]}


async def smart_reorder(
    oracle: AdvisoryOracle,
    products: Sequence[Product],
    machines: Sequence[Machine],
) -> str:
    """Reorder recommendations from stock levels alone; no sales are sent."""
    snapshot = build_snapshot(products, [], machines)
    return await oracle.get_insight(REORDER_PROMPT, snapshot)


class AdvisorySession:
    """The oracle plus the UI state bound to it, kept in app.extensions."""

    def __init__(self, oracle: AdvisoryOracle) -> None:
        self.oracle = oracle
        self.popup = PriceSuggestionPopup()
        self.chat = ChatSession()
