"""Batched generation of flashcards and MCQs."""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from .config import DEFAULT_DIFFICULTY
from .errors import ParseError, TransportError
from .llm import ModelInvoker
from .models import (
    MCQ_OPTIONS,
    OP_ANALYZE,
    OP_FLASHCARDS,
    OP_MCQS,
    BatchState,
    Flashcard,
    GenerationRequest,
    MCQ,
)
from .prompt import build_prompt
from .recovery import ENVELOPE_FLASHCARDS, ENVELOPE_QUESTIONS, recover

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

CORRECT_LETTER_RE = re.compile(r"\b([ABCD])\b")

ENVELOPES = {
    OP_FLASHCARDS: ENVELOPE_FLASHCARDS,
    OP_MCQS: ENVELOPE_QUESTIONS,
}


def chunk_size_for(difficulty: int, requested: int) -> int:
    if difficulty >= 5:
        return min(5, requested)
    if difficulty >= 4:
        return min(7, requested)
    return requested


def normalize_flashcard(item: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(item, dict):
        return None
    question = str(item.get("question") or "").strip()
    answer = str(item.get("answer") or "").strip()
    if not question or not answer:
        return None
    return Flashcard(question=question, answer=answer).to_dict()


def _correct_letter(value: Any) -> Optional[str]:
    text = str(value or "").strip()
    if len(text) == 1:
        text = text.upper()
    match = CORRECT_LETTER_RE.search(text)
    return match.group(1) if match else None


def normalize_mcq(item: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(item, dict):
        return None
    question = str(item.get("question") or "").strip()
    options = {letter: str(item.get(letter) or "").strip() for letter in MCQ_OPTIONS}
    correct = _correct_letter(item.get("correct"))
    if not question or not all(options.values()) or correct is None:
        return None
    return MCQ(question=question, correct=correct, **options).to_dict()


NORMALIZERS = {
    OP_FLASHCARDS: normalize_flashcard,
    OP_MCQS: normalize_mcq,
}


class BatchOrchestrator:
    """Drives prompt → model → recovery across sequential chunks.

    One orchestrator per top-level generation call; ``state`` describes the
    last run and lets callers compare delivered against requested counts.
    """

    def __init__(self, invoker: ModelInvoker, operation: str):
        if operation not in ENVELOPES:
            raise ValueError(f"Operation {operation!r} is not a batch operation")
        self.invoker = invoker
        self.operation = operation
        self.envelope = ENVELOPES[operation]
        self.state: Optional[BatchState] = None

    def _generate_single(self, request: GenerationRequest) -> List[Dict[str, Any]]:
        prompt = build_prompt(self.operation, request)
        raw_text = self.invoker.invoke_for(self.operation, prompt)
        payload = recover(raw_text, self.envelope)

        if isinstance(payload, dict):
            raw_items = payload.get(self.envelope) or []
        elif isinstance(payload, list):
            raw_items = payload
        else:
            raw_items = []
        if not isinstance(raw_items, list):
            raise ParseError(f"Expected a list under {self.envelope!r} in the model output")

        normalize = NORMALIZERS[self.operation]
        items = [item for item in (normalize(raw) for raw in raw_items) if item is not None]
        dropped = len(raw_items) - len(items)
        if dropped:
            logger.warning("Dropped %d malformed %s item(s)", dropped, self.envelope)
        return items[: request.count]

    def generate(
        self,
        request: GenerationRequest,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[Dict[str, Any]]:
        difficulty = request.difficulty or DEFAULT_DIFFICULTY
        chunk_size = chunk_size_for(difficulty, request.count)
        state = BatchState(target_count=request.count, chunk_size=chunk_size)
        self.state = state

        if request.count <= chunk_size:
            state.batches_attempted = 1
            state.completed_items.extend(self._generate_single(request))
            state.batches_succeeded = 1
            return list(state.completed_items)

        total_batches = state.total_batches
        logger.info(
            "Generating %d %s in chunks of %d (difficulty: %d)",
            request.count,
            self.envelope,
            chunk_size,
            difficulty,
        )
        prior = tuple(request.existing)

        for index in range(total_batches):
            remaining = state.remaining
            if remaining <= 0:
                break
            batch_count = min(chunk_size, remaining)
            if self.operation == OP_FLASHCARDS:
                batch_request = replace(
                    request,
                    count=batch_count,
                    existing=prior + tuple(state.completed_items),
                )
            else:
                batch_request = replace(request, count=batch_count)

            logger.info("Generating batch %d/%d (%d %s)", index + 1, total_batches, batch_count, self.envelope)
            if on_progress:
                on_progress(index + 1, total_batches)

            state.batches_attempted += 1
            try:
                items = self._generate_single(batch_request)
            except (ParseError, TransportError) as exc:
                if state.completed_items:
                    logger.warning(
                        "Batch %d/%d failed (%s); continuing with %d %s generated so far",
                        index + 1,
                        total_batches,
                        exc,
                        len(state.completed_items),
                        self.envelope,
                    )
                    break
                logger.error("Batch %d/%d failed with nothing collected: %s", index + 1, total_batches, exc)
                raise

            state.batches_succeeded += 1
            state.completed_items.extend(items)
            logger.info(
                "Batch %d/%d done, total %s: %d",
                index + 1,
                total_batches,
                self.envelope,
                len(state.completed_items),
            )

        if state.remaining > 0:
            logger.warning(
                "Delivering %d of %d requested %s (%d/%d batches succeeded)",
                len(state.completed_items),
                state.target_count,
                self.envelope,
                state.batches_succeeded,
                state.batches_attempted,
            )
        return list(state.completed_items)


def analyze_transcript(transcript: str, language: str, invoker: ModelInvoker) -> Dict[str, Any]:
    request = GenerationRequest(operation=OP_ANALYZE, transcript=transcript, language=language)
    raw_text = invoker.invoke_for(OP_ANALYZE, build_prompt(OP_ANALYZE, request))
    payload = recover(raw_text)
    if not isinstance(payload, dict) or not payload.get("subject"):
        raise ParseError("Model output is missing the course subject")
    outline = payload.get("outline") or []
    if isinstance(outline, str):
        outline = [outline]
    return {
        "subject": str(payload["subject"]).strip(),
        "outline": [str(point).strip() for point in outline if str(point).strip()],
    }


def generate_flashcards(
    request: GenerationRequest,
    invoker: ModelInvoker,
    on_progress: Optional[ProgressCallback] = None,
) -> Dict[str, List[Dict[str, Any]]]:
    orchestrator = BatchOrchestrator(invoker, OP_FLASHCARDS)
    return {"flashcards": orchestrator.generate(request, on_progress)}


def generate_mcqs(
    request: GenerationRequest,
    invoker: ModelInvoker,
    on_progress: Optional[ProgressCallback] = None,
) -> Dict[str, List[Dict[str, Any]]]:
    orchestrator = BatchOrchestrator(invoker, OP_MCQS)
    return {"mcqs": orchestrator.generate(request, on_progress)}
