import logging

from django.db.models import Count, Q
from django.utils import timezone

from .models import Batch, Requisition

logger = logging.getLogger(__name__)


def rollup_status(total, processed, successful, failed):
    if failed == total:
        return Batch.STATUS_FAILED
    if successful == total:
        return Batch.STATUS_COMPLETED
    if processed > 0:
        return Batch.STATUS_PARTIALLY_FAILED
    return Batch.STATUS_PROCESSING


def update_batch_counts(batch_id):
    """
    Recompute a batch's counters and status from its requisitions.

    Safe to call any number of times; concurrent calls may briefly write a
    stale snapshot, which the next call corrects.
    """
    counts = Requisition.objects.filter(batch_id=batch_id).aggregate(
        total=Count('id'),
        processed=Count('id', filter=Q(status__in=Requisition.PROCESSED_STATUSES)),
        successful=Count('id', filter=Q(status__in=Requisition.SUCCESSFUL_STATUSES)),
        failed=Count('id', filter=Q(status=Requisition.STATUS_FAILED)),
    )

    status = rollup_status(counts['total'], counts['processed'], counts['successful'], counts['failed'])

    Batch.objects.filter(pk=batch_id).update(
        processed_items=counts['processed'],
        successful_items=counts['successful'],
        failed_items=counts['failed'],
        status=status,
        updated_at=timezone.now(),
    )

    logger.info(
        "batch_counts_updated",
        extra={"batch_id": str(batch_id), "status": status},
    )
    return {
        "total_items": counts['total'],
        "processed_items": counts['processed'],
        "successful_items": counts['successful'],
        "failed_items": counts['failed'],
        "status": status,
    }
