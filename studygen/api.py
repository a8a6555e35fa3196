"""Flask blueprint exposing PDF extraction jobs and study material generation."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from flask import Blueprint, current_app, jsonify, request

from .batch import analyze_transcript, generate_flashcards, generate_mcqs, normalize_mcq
from .config import (
    DEFAULT_DIFFICULTY,
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
    SUPPORTED_LANGUAGES,
    Settings,
)
from .errors import CorruptedDataError, StudyGenError, ValidationError
from .llm import ModelInvoker
from .models import MCQ, MCQ_OPTIONS, OP_FLASHCARDS, OP_MCQS, CourseData, GenerationRequest
from .pdf import start_extraction, validate_pdf_upload
from .storage import JobRepository

logger = logging.getLogger(__name__)

studygen_bp = Blueprint("studygen", __name__, url_prefix="/api")

MAX_ITEMS_PER_REQUEST = 50


def _settings() -> Settings:
    return current_app.extensions["studygen_settings"]


def _repository() -> JobRepository:
    return current_app.extensions["studygen_jobs"]


def _invoker() -> ModelInvoker:
    factory: Optional[Callable[[], ModelInvoker]] = current_app.extensions.get("studygen_invoker_factory")
    if factory is not None:
        return factory()
    return ModelInvoker(_settings())


@studygen_bp.errorhandler(StudyGenError)
def handle_studygen_error(exc: StudyGenError):
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.path, exc.message)
    else:
        logger.info("%s on %s: %s", type(exc).__name__, request.path, exc.message)
    return jsonify({"error": exc.message}), exc.status_code


@studygen_bp.route("/health")
def health():
    return jsonify({"status": "ok", "store": _repository().is_available()})


@studygen_bp.route("/pdf-extract", methods=["POST"])
def create_pdf_job():
    file = request.files.get("file")
    settings = _settings()
    data = file.read() if file else None
    validate_pdf_upload(
        file.filename if file else None,
        file.content_type if file else None,
        data,
        settings.max_file_size_bytes,
    )

    repository = _repository()
    if not repository.is_available():
        return jsonify({"error": "KV Store not available"}), 503

    job_id, _ = start_extraction(repository, data)
    logger.info("Started PDF extraction job %s for %s", job_id, file.filename)
    return jsonify({"jobId": job_id})


@studygen_bp.route("/pdf-extract/status/<job_id>")
def get_pdf_job_status(job_id: str):
    repository = _repository()
    if not repository.is_available():
        return jsonify({"error": "KV Store not available"}), 503
    try:
        job = repository.get_job(job_id)
    except CorruptedDataError:
        logger.error("Failed to decode job %s; data might be corrupted", job_id)
        return jsonify({"error": "Failed to process job status due to corrupted data."}), 500
    if job is None:
        return jsonify({"error": "Job not found"}), 404
    return jsonify(job.to_dict())


def _json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def _parse_language(value: Any) -> str:
    if value is None:
        return "en"
    language = value.strip().lower() if isinstance(value, str) else None
    if language not in SUPPORTED_LANGUAGES:
        raise ValidationError(f"Unsupported language: {value!r}")
    return language


def _parse_int(value: Any, name: str, default: int, low: int, high: int) -> int:
    if value is None:
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer.") from None
    if number < low or number > high:
        raise ValidationError(f"{name} must be between {low} and {high}.")
    return number


def _prepare_transcript(value: Any) -> str:
    """Check word-count bounds, then cut to the transcript word threshold."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Transcript is required.")
    settings = _settings()
    words = value.split()
    if len(words) < settings.min_word_count:
        raise ValidationError(
            f"Transcript has {len(words)} words; at least {settings.min_word_count} are required."
        )
    if len(words) > settings.max_word_count:
        raise ValidationError(
            f"Transcript has {len(words)} words; the maximum is {settings.max_word_count}."
        )
    if len(words) > settings.transcript_word_threshold:
        logger.info(
            "Truncating transcript from %d to %d words",
            len(words),
            settings.transcript_word_threshold,
        )
        return " ".join(words[: settings.transcript_word_threshold])
    return value.strip()


def _generation_request(payload: Dict[str, Any], operation: str) -> GenerationRequest:
    existing = ()
    if operation == OP_FLASHCARDS:
        existing = tuple(item for item in payload.get("existingFlashcards") or [] if isinstance(item, dict))
    return GenerationRequest(
        operation=operation,
        transcript=_prepare_transcript(payload.get("transcript")),
        language=_parse_language(payload.get("language")),
        course=CourseData.from_dict(payload.get("courseData")),
        count=_parse_int(payload.get("count"), "count", 10, 1, MAX_ITEMS_PER_REQUEST),
        difficulty=_parse_int(
            payload.get("difficulty"), "difficulty", DEFAULT_DIFFICULTY, MIN_DIFFICULTY, MAX_DIFFICULTY
        ),
        existing=existing,
    )


def _log_progress(kind: str) -> Callable[[int, int], None]:
    def on_progress(current: int, total: int) -> None:
        logger.info("%s batch %d/%d", kind, current, total)

    return on_progress


@studygen_bp.route("/analyze", methods=["POST"])
def analyze():
    payload = _json_body()
    transcript = _prepare_transcript(payload.get("transcript"))
    language = _parse_language(payload.get("language"))
    return jsonify(analyze_transcript(transcript, language, _invoker()))


@studygen_bp.route("/flashcards", methods=["POST"])
def flashcards():
    generation_request = _generation_request(_json_body(), OP_FLASHCARDS)
    result = generate_flashcards(generation_request, _invoker(), _log_progress("Flashcard"))
    return jsonify(result)


@studygen_bp.route("/mcqs", methods=["POST"])
def mcqs():
    generation_request = _generation_request(_json_body(), OP_MCQS)
    result = generate_mcqs(generation_request, _invoker(), _log_progress("MCQ"))
    return jsonify(result)


@studygen_bp.route("/mcqs/grade", methods=["POST"])
def grade_mcq():
    payload = _json_body()
    mcq_data = normalize_mcq(payload.get("mcq"))
    if mcq_data is None:
        raise ValidationError("mcq must contain question, options A-D and a correct letter.")
    selection = str(payload.get("selection") or "").strip().upper()
    if selection not in MCQ_OPTIONS:
        raise ValidationError("selection must be one of A, B, C or D.")
    return jsonify(MCQ(**mcq_data).grade(selection).to_dict())
