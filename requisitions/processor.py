"""
Per-requisition processing: idempotency guard, create in Fusion, optional submit.

The processor reports what happened as a ProcessingOutcome instead of raising
for remote failures. The Celery task decides from `outcome.retryable` whether
the job goes back on the queue; duplicates and skips never do.
"""
import logging
import time
from dataclasses import dataclass, asdict
from typing import Optional

from django.conf import settings
from django.db import transaction as db_transaction
from django.utils import timezone

from .exceptions import RequisitionNotFound
from .fusion import FusionAPIError, remote_id_from
from .models import Requisition
from .payloads import build_create_payload

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "Duplicate external reference"


def _error_text(exc):
    return str(exc) or exc.__class__.__name__


@dataclass(frozen=True)
class ProcessingOutcome:
    CREATED = 'created'
    SUBMITTED = 'submitted'
    SKIPPED = 'skipped'
    DUPLICATE = 'duplicate'
    FAILED = 'failed'

    kind: str
    requisition_id: str
    message: Optional[str] = None
    retryable: bool = False

    def as_dict(self):
        return asdict(self)


class RequisitionProcessor:
    def __init__(self, client, external_ref_field=None):
        self.client = client
        self.external_ref_field = external_ref_field or getattr(
            settings, 'FUSION_EXTERNAL_REF_FIELD', 'ExternalReference'
        )

    def process(self, requisition_id, attempt=1):
        start = time.time()
        log_info = {"requisition_id": str(requisition_id)}

        try:
            requisition = Requisition.objects.get(pk=requisition_id)
        except Requisition.DoesNotExist:
            logger.error("requisition_not_found", extra=log_info)
            raise RequisitionNotFound(requisition_id)

        log_info["batch_id"] = str(requisition.batch_id)

        if not self._is_eligible(requisition, attempt):
            logger.warning(
                "requisition_skipped",
                extra={**log_info, "status": requisition.status},
            )
            return ProcessingOutcome(ProcessingOutcome.SKIPPED, str(requisition.id), requisition.status)

        if requisition.external_reference and self._reference_exists(requisition, log_info):
            self._mark_failed(requisition, DUPLICATE_MESSAGE, retryable=False)
            return ProcessingOutcome(ProcessingOutcome.DUPLICATE, str(requisition.id), DUPLICATE_MESSAGE)

        try:
            response = self.client.create_requisition(
                build_create_payload(requisition, self.external_ref_field)
            )
        except FusionAPIError as exc:
            logger.error("requisition_create_failed", extra={**log_info, "error": exc.message})
            self._mark_failed(requisition, exc.message, retryable=True)
            return ProcessingOutcome(ProcessingOutcome.FAILED, str(requisition.id), exc.message, retryable=True)
        except Exception as exc:
            message = _error_text(exc)
            logger.exception("requisition_create_failed", extra={**log_info, "error": message})
            self._mark_failed(requisition, message, retryable=True)
            return ProcessingOutcome(ProcessingOutcome.FAILED, str(requisition.id), message, retryable=True)

        remote_id = remote_id_from(response)
        with db_transaction.atomic():
            requisition.status = Requisition.STATUS_CREATED
            requisition.fusion_requisition_id = remote_id
            requisition.requisition_number = response.get('RequisitionNumber')
            requisition.response_payload = response
            requisition.error_message = None
            requisition.failure_retryable = False
            requisition.save(update_fields=[
                'status', 'fusion_requisition_id', 'requisition_number',
                'response_payload', 'error_message', 'failure_retryable', 'updated_at',
            ])

        if not requisition.wants_submit:
            logger.info(
                "requisition_created",
                extra={**log_info, "status": requisition.status, "duration_sec": round(time.time() - start, 4)},
            )
            return ProcessingOutcome(ProcessingOutcome.CREATED, str(requisition.id))

        return self._submit(requisition, remote_id, log_info, start)

    def _is_eligible(self, requisition, attempt):
        if requisition.status == Requisition.STATUS_PENDING:
            return True
        # A redelivered job may pick up the retryable failure its previous attempt recorded
        return (
            attempt > 1
            and requisition.status == Requisition.STATUS_FAILED
            and requisition.failure_retryable
        )

    def _reference_exists(self, requisition, log_info):
        try:
            existing = self.client.find_by_external_reference(requisition.external_reference)
        except FusionAPIError as exc:
            logger.warning("duplicate_check_failed", extra={**log_info, "error": exc.message})
            return False

        if existing and existing.get('items'):
            logger.warning(
                f"external reference {requisition.external_reference} already exists",
                extra=log_info,
            )
            return True
        return False

    def _submit(self, requisition, remote_id, log_info, start):
        try:
            if not remote_id:
                raise FusionAPIError("No requisition ID returned from Fusion")
            self.client.submit_requisition(remote_id)
        except Exception as exc:
            message = f"Submit failed: {_error_text(exc)}"
            logger.error(
                "requisition_submit_failed",
                extra={**log_info, "error": _error_text(exc)},
                exc_info=not isinstance(exc, FusionAPIError),
            )
            self._mark_failed(requisition, message, retryable=True)
            return ProcessingOutcome(ProcessingOutcome.FAILED, str(requisition.id), message, retryable=True)

        with db_transaction.atomic():
            requisition.status = Requisition.STATUS_SUBMITTED
            requisition.submitted = True
            requisition.submitted_at = timezone.now()
            requisition.save(update_fields=['status', 'submitted', 'submitted_at', 'updated_at'])

        logger.info(
            "requisition_submitted",
            extra={**log_info, "status": requisition.status, "duration_sec": round(time.time() - start, 4)},
        )
        return ProcessingOutcome(ProcessingOutcome.SUBMITTED, str(requisition.id))

    def _mark_failed(self, requisition, message, retryable):
        with db_transaction.atomic():
            requisition.status = Requisition.STATUS_FAILED
            requisition.error_message = message
            requisition.failure_retryable = retryable
            requisition.save(update_fields=['status', 'error_message', 'failure_retryable', 'updated_at'])
