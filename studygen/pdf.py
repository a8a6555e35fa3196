"""PDF upload validation and background text extraction."""

from __future__ import annotations

import io
import logging
import threading
import uuid
from typing import Optional, Tuple

from pypdf import PdfReader

from .config import PDF_MIME_TYPE, PDF_SIGNATURE
from .errors import ValidationError
from .models import JOB_COMPLETED, JOB_FAILED, Job
from .storage import JobRepository

logger = logging.getLogger(__name__)

PROGRESS_READ = 30
PROGRESS_EXTRACTED = 70
PROGRESS_DONE = 100


def validate_pdf_upload(
    filename: Optional[str],
    content_type: Optional[str],
    data: Optional[bytes],
    max_bytes: int,
) -> None:
    """Reject anything that is not a PDF within the size ceiling."""
    if not filename or data is None:
        raise ValidationError("No file uploaded.")
    if not filename.lower().endswith(".pdf"):
        raise ValidationError("Invalid file extension. Only PDF files (.pdf) are allowed.")
    mime = (content_type or "").split(";", 1)[0].strip().lower()
    if mime != PDF_MIME_TYPE:
        raise ValidationError("Invalid file type. Only PDF is allowed.")
    if len(data) > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        raise ValidationError(f"File exceeds maximum size limit of {limit_mb}MB.", status_code=413)
    if data[: len(PDF_SIGNATURE)] != PDF_SIGNATURE:
        raise ValidationError("Invalid PDF file content. The file does not appear to be a valid PDF.")


def extract_text(data: bytes) -> Tuple[str, int]:
    reader = PdfReader(io.BytesIO(data))
    pages = [page.extract_text() or "" for page in reader.pages]
    return "\n".join(pages).strip(), len(pages)


def process_pdf(repository: JobRepository, job: Job, data: bytes) -> Job:
    """Drive ``job`` from processing(0) to completed(100) or failed."""
    try:
        buffer = bytes(data)
        job.progress = PROGRESS_READ
        repository.save(job)

        text, page_count = extract_text(buffer)
        logger.info("Extracted text from %d pages for job %s", page_count, job.id)
        job.progress = PROGRESS_EXTRACTED
        repository.save(job)

        job.status = JOB_COMPLETED
        job.progress = PROGRESS_DONE
        job.result = text
        repository.save(job)
    except Exception as exc:
        logger.exception("PDF extraction failed for job %s", job.id)
        job.status = JOB_FAILED
        job.error = str(exc) or "PDF extraction failed"
        job.result = None
        try:
            repository.save(job)
        except Exception:
            logger.exception("Could not record failure for job %s", job.id)
    return job


def start_extraction(repository: JobRepository, data: bytes) -> Tuple[str, threading.Thread]:
    """Create the job record and extract in a detached thread.

    Returns as soon as the job exists; the caller polls the job for the result.
    """
    job_id = str(uuid.uuid4())
    job = repository.create_job(job_id)
    worker = threading.Thread(
        target=process_pdf,
        args=(repository, job, data),
        name=f"pdf_extract_{job_id}",
        daemon=True,
    )
    worker.start()
    return job_id, worker
