class RequisitionsError(Exception):
    """Base class for batch/requisition errors surfaced to callers."""


class BatchNotFound(RequisitionsError):
    def __init__(self, batch_id):
        self.batch_id = batch_id
        super().__init__(f"Batch with ID {batch_id} not found")


class RequisitionNotFound(RequisitionsError):
    def __init__(self, requisition_id):
        self.requisition_id = requisition_id
        super().__init__(f"Requisition {requisition_id} not found")


class BatchValidationError(RequisitionsError):
    """Malformed batch input, rejected before anything is persisted."""


class IngestionError(BatchValidationError):
    """Uploaded file could not be turned into requisitions."""


class BatchStateConflict(RequisitionsError):
    """Operation not allowed in the batch's current status."""
