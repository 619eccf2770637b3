from django.db import models
import uuid

class Batch(models.Model):
    STATUS_PENDING = 'PENDING'
    STATUS_PROCESSING = 'PROCESSING'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_FAILED = 'FAILED'
    STATUS_PARTIALLY_FAILED = 'PARTIALLY_FAILED'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PROCESSING, 'Processing'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_FAILED, 'Failed'),
        (STATUS_PARTIALLY_FAILED, 'Partially failed'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    file_name = models.CharField(max_length=255)
    original_file_name = models.CharField(max_length=255, null=True, blank=True)
    status = models.CharField(max_length=32, choices=STATUS_CHOICES, default=STATUS_PENDING)
    total_items = models.IntegerField(default=0)
    processed_items = models.IntegerField(default=0)
    successful_items = models.IntegerField(default=0)
    failed_items = models.IntegerField(default=0)
    error_message = models.TextField(null=True, blank=True)
    metadata = models.JSONField(null=True, blank=True)
    uploaded_by = models.CharField(max_length=255, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'batches'
        indexes = [
            models.Index(fields=['status'], name='batches_status_idx'),
            models.Index(fields=['created_at'], name='batches_created_at_idx'),
        ]

    def __str__(self):
        return f"Batch {self.id} ({self.status})"


class Requisition(models.Model):
    STATUS_PENDING = 'PENDING'
    STATUS_CREATED = 'CREATED'
    STATUS_SUBMITTED = 'SUBMITTED'
    STATUS_APPROVED = 'APPROVED'
    STATUS_REJECTED = 'REJECTED'
    STATUS_FAILED = 'FAILED'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_CREATED, 'Created'),
        (STATUS_SUBMITTED, 'Submitted'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_FAILED, 'Failed'),
    ]

    # Statuses the processor never acts on again
    PROCESSED_STATUSES = (
        STATUS_CREATED,
        STATUS_SUBMITTED,
        STATUS_APPROVED,
        STATUS_REJECTED,
        STATUS_FAILED,
    )
    SUCCESSFUL_STATUSES = (STATUS_CREATED, STATUS_SUBMITTED, STATUS_APPROVED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    batch = models.ForeignKey(Batch, on_delete=models.CASCADE, related_name='requisitions')
    business_unit = models.CharField(max_length=255)
    requester = models.CharField(max_length=255)
    deliver_to_location = models.CharField(max_length=255, null=True, blank=True)
    external_reference = models.CharField(max_length=255, null=True, blank=True, db_index=True)
    fusion_requisition_id = models.CharField(max_length=255, null=True, blank=True)
    requisition_number = models.CharField(max_length=255, null=True, blank=True)
    status = models.CharField(max_length=32, choices=STATUS_CHOICES, default=STATUS_PENDING)
    error_message = models.TextField(null=True, blank=True)
    failure_retryable = models.BooleanField(default=False)
    request_payload = models.JSONField()
    response_payload = models.JSONField(null=True, blank=True)
    lines = models.JSONField(default=list)
    submitted = models.BooleanField(default=False)
    submitted_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'requisitions'
        indexes = [
            models.Index(fields=['batch', 'status'], name='requisitions_batch_status_idx'),
        ]

    def __str__(self):
        return f"Requisition {self.id} ({self.status})"

    @property
    def wants_submit(self):
        return bool((self.request_payload or {}).get('submit'))
