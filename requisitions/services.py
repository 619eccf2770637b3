import logging
import time

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction as db_transaction
from django.utils import timezone

from project.settings import get_correlation_id
from .exceptions import BatchNotFound, BatchStateConflict, BatchValidationError, RequisitionNotFound
from .fusion import get_fusion_client
from .models import Batch, Requisition
from .tasks import process_requisition

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10

REQUIRED_FIELDS = ('business_unit', 'requester')


def _positive_int(value, default):
    try:
        value = int(value)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def coerce_paging(page, limit):
    return _positive_int(page, DEFAULT_PAGE), _positive_int(limit, DEFAULT_LIMIT)


class BatchService:
    """Creates batches, queues their requisitions and answers status queries."""

    def create_batch(self, file_name, requisitions, metadata=None, uploaded_by=None, original_file_name=None):
        self._validate(requisitions)
        start_time = time.time()

        with db_transaction.atomic():
            batch = Batch.objects.create(
                file_name=file_name,
                original_file_name=original_file_name,
                total_items=len(requisitions),
                uploaded_by=uploaded_by,
                metadata=metadata,
                status=Batch.STATUS_PENDING,
            )

            Requisition.objects.bulk_create([
                Requisition(
                    batch=batch,
                    business_unit=item['business_unit'],
                    requester=item['requester'],
                    deliver_to_location=item.get('deliver_to_location'),
                    external_reference=item.get('external_reference') or None,
                    request_payload=item,
                    lines=item['lines'],
                    status=Requisition.STATUS_PENDING,
                )
                for item in requisitions
            ])

        self.enqueue_batch(batch.id)
        batch.refresh_from_db()

        logger.info(
            f"batch created for file {file_name} with {len(requisitions)} requisitions",
            extra={
                "batch_id": str(batch.id),
                "status": batch.status,
                "duration_sec": round(time.time() - start_time, 4),
            },
        )
        return batch

    def _validate(self, requisitions):
        if not requisitions:
            raise BatchValidationError("No requisitions provided")

        for index, item in enumerate(requisitions, start=1):
            missing = [field for field in REQUIRED_FIELDS if not item.get(field)]
            if not item.get('lines'):
                missing.append('lines')
            if missing:
                raise BatchValidationError(
                    f"Requisition {index}: missing required fields: {', '.join(missing)}"
                )

    def get_batch(self, batch_id):
        try:
            return Batch.objects.prefetch_related('requisitions').get(pk=batch_id)
        except (Batch.DoesNotExist, DjangoValidationError, ValueError):
            raise BatchNotFound(batch_id)

    def list_batches(self, page=DEFAULT_PAGE, limit=DEFAULT_LIMIT, status=None):
        page, limit = coerce_paging(page, limit)

        qs = Batch.objects.all()
        if status:
            qs = qs.filter(status=status)

        total = qs.count()
        offset = (page - 1) * limit
        batches = list(qs.order_by('-created_at')[offset:offset + limit])
        return batches, total

    def get_batch_metrics(self, batch_id):
        batch = self.get_batch(batch_id)

        end = batch.updated_at if batch.status == Batch.STATUS_COMPLETED else timezone.now()
        processing_time = (end - batch.created_at).total_seconds() * 1000
        average = processing_time / batch.processed_items if batch.processed_items > 0 else 0

        return {
            "total_items": batch.total_items,
            "processed_items": batch.processed_items,
            "successful_items": batch.successful_items,
            "failed_items": batch.failed_items,
            "processing_time": processing_time,
            "average_processing_time": average,
        }

    def retry_batch(self, batch_id):
        batch = self.get_batch(batch_id)

        now = timezone.now()
        with db_transaction.atomic():
            # Concurrent retries serialize on the batch row
            batch = Batch.objects.select_for_update().get(pk=batch.pk)
            if batch.status == Batch.STATUS_PROCESSING:
                raise BatchStateConflict("Batch is currently processing")

            reset = batch.requisitions.filter(status=Requisition.STATUS_FAILED).update(
                status=Requisition.STATUS_PENDING,
                error_message=None,
                failure_retryable=False,
                updated_at=now,
            )
            Batch.objects.filter(pk=batch.pk).update(
                status=Batch.STATUS_PENDING,
                processed_items=0,
                successful_items=0,
                failed_items=0,
                error_message=None,
                updated_at=now,
            )

        self.enqueue_batch(batch.pk)
        logger.info(
            f"batch queued for retry, {reset} failed requisitions reset",
            extra={"batch_id": str(batch.pk)},
        )
        return reset

    def fetch_remote_requisition(self, requisition_id, client=None):
        """Return the live Fusion record behind a stored requisition."""
        try:
            requisition = Requisition.objects.get(pk=requisition_id)
        except (Requisition.DoesNotExist, DjangoValidationError, ValueError):
            raise RequisitionNotFound(requisition_id)

        if not requisition.fusion_requisition_id:
            raise BatchStateConflict("Requisition has not been created in Fusion yet")

        client = client or get_fusion_client()
        return requisition, client.get_requisition(requisition.fusion_requisition_id)

    def enqueue_batch(self, batch_id):
        claimed = Batch.objects.filter(pk=batch_id, status=Batch.STATUS_PENDING).update(
            status=Batch.STATUS_PROCESSING,
            updated_at=timezone.now(),
        )
        if not claimed:
            # Another caller already moved this batch to PROCESSING and queued its jobs
            logger.warning("batch_already_enqueued", extra={"batch_id": str(batch_id)})
            return 0

        correlation_id = get_correlation_id()
        requisition_ids = list(
            Requisition.objects.filter(batch_id=batch_id).values_list('id', flat=True)
        )
        for requisition_id in requisition_ids:
            process_requisition.apply_async(
                args=[str(batch_id), str(requisition_id)],
                kwargs={"correlation_id": correlation_id},
            )

        logger.info(
            f"enqueued {len(requisition_ids)} requisitions",
            extra={"batch_id": str(batch_id), "status": Batch.STATUS_PROCESSING},
        )
        return len(requisition_ids)
