"""Job record persistence for PDF extraction jobs."""

from __future__ import annotations

import logging
from typing import Optional

from job_storage import PersistentJobStorage

from .config import PDF_JOB_PREFIX
from .errors import CorruptedDataError
from .models import JOB_PROCESSING, Job, utc_now

logger = logging.getLogger(__name__)


def job_key(job_id: str) -> str:
    return f"{PDF_JOB_PREFIX}:{job_id}"


class JobRepository:
    """Reads and writes whole ``Job`` records through the key/value store."""

    def __init__(self, storage: PersistentJobStorage):
        self.storage = storage

    def is_available(self) -> bool:
        return self.storage.is_available()

    def create_job(self, job_id: str) -> Job:
        job = Job(id=job_id, status=JOB_PROCESSING, progress=0)
        self.save(job)
        return job

    def save(self, job: Job) -> None:
        job.updated_at = utc_now()
        self.storage.set(job_key(job.id), job.to_dict())
        logger.debug("Job %s -> %s (%d%%)", job.id, job.status, job.progress)

    def get_job(self, job_id: str) -> Optional[Job]:
        data = self.storage.get(job_key(job_id))
        if data is None:
            return None
        if not isinstance(data, dict):
            raise CorruptedDataError("Failed to process job status due to corrupted data.")
        data.setdefault("id", job_id)
        try:
            return Job.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("Job %s has an undecodable record: %r", job_id, data)
            raise CorruptedDataError("Failed to process job status due to corrupted data.") from exc
