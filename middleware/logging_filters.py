import logging

class EnsureObservabilityFields(logging.Filter):
    """
    Ensures every log record contains all fields required by the JSON formatters.
    Prevents KeyError exceptions when Django or Celery log internally.
    """

    DEFAULTS = {
        "correlation_id": "-",
        "method": "-",
        "type": "-",
        "client_ip": "-",
        "user_agent": "-",
        "path": "-",
        "status_code": "-",
        "response_bytes": "-",
        "duration_sec": "-",
        "task_name": "-",
        "task_id": "-",
        "queue": "-",
        "retries": "-",
        "batch_id": "-",
        "requisition_id": "-",
        "status": "-",
        "error": "-",
    }

    def filter(self, record):
        for key, value in self.DEFAULTS.items():
            if not hasattr(record, key):
                if key == "correlation_id":
                    # Fall back to the id bound to the current request/task
                    from project.settings import get_correlation_id
                    value = get_correlation_id() or value
                setattr(record, key, value)
        return True
