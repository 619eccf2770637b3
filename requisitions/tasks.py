import time, logging
from celery import shared_task, Task
from django.conf import settings
from .aggregation import update_batch_counts
from .fusion import FusionAPIError, get_fusion_client
from .processor import RequisitionProcessor
from project.settings import set_correlation_id, get_correlation_id
logger = logging.getLogger(__name__)
task_logger = logging.getLogger("observability.tasks")


class ObservabilityTask(Task):
    abstract = True

    def __call__(self, *args, **kwargs):
        self._start = time.time()

        # Use incoming correlation ID, else generate one
        cid = kwargs.get("correlation_id") or getattr(self.request, "correlation_id", None)
        set_correlation_id(cid)

        return super().__call__(*args, **kwargs)

    def _task_extra(self, task_id):
        duration = time.time() - getattr(self, "_start", time.time())
        return {
            "correlation_id": get_correlation_id(),
            "task_name": self.name,
            "task_id": task_id,
            "queue": (self.request.delivery_info or {}).get("routing_key"),
            "retries": self.request.retries,
            "duration_sec": f"{duration:.4f}",
        }

    def on_success(self, retval, task_id, args, kwargs):
        task_logger.info(f"{self.name} completed", extra=self._task_extra(task_id))

    def on_retry(self, exc, task_id, args, kwargs, einfo):
        task_logger.warning(f"{self.name} retrying: {exc}", extra=self._task_extra(task_id))

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        task_logger.error(f"{self.name} failed: {exc}", extra=self._task_extra(task_id))


def retry_countdown(retries):
    return settings.REQUISITION_RETRY_BACKOFF * (2 ** retries)


@shared_task(
    bind=True,
    base=ObservabilityTask,
    max_retries=settings.REQUISITION_MAX_ATTEMPTS - 1,
    default_retry_delay=settings.REQUISITION_RETRY_BACKOFF,
)
def process_requisition(self, batch_id, requisition_id, correlation_id=None):
    attempt = self.request.retries + 1
    log_info = {
        "correlation_id": get_correlation_id(),
        "batch_id": batch_id,
        "requisition_id": requisition_id,
    }
    logger.info(f"task_started attempt={attempt}", extra=log_info)

    processor = RequisitionProcessor(get_fusion_client())
    outcome = processor.process(requisition_id, attempt=attempt)

    update_batch_counts(batch_id)

    if outcome.retryable:
        # Raises the original error once the attempt budget is spent; the requisition stays FAILED
        raise self.retry(
            exc=FusionAPIError(outcome.message),
            countdown=retry_countdown(self.request.retries),
        )

    logger.info("task_completed", extra={**log_info, "status": outcome.kind})
    return outcome.as_dict()
