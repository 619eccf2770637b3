import logging
import time
import uuid
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.parsers import MultiPartParser, FormParser, JSONParser
from rest_framework import status
from rest_framework.generics import GenericAPIView
from django.conf import settings
from django.db import connection
from django.http import HttpResponse, JsonResponse
import redis

from .exceptions import BatchNotFound, BatchStateConflict, BatchValidationError, RequisitionNotFound
from .fusion import FusionAPIError
from .ingestion import export_batch_results, parse_upload, template_csv
from .serializers import (
    BatchDetailSerializer,
    BatchMetricsSerializer,
    BatchSerializer,
    CreateBatchSerializer,
)
from .services import BatchService, coerce_paging

# Structured logger
logger = logging.getLogger(__name__)


############################
# CORRELATION ID UTIL
############################
def get_correlation_id(request):
    return getattr(request, "correlation_id", None) or request.headers.get("X-Correlation-ID", str(uuid.uuid4()))


def not_found(batch_id, correlation_id):
    return Response(
        {"detail": f"Batch with ID {batch_id} not found", "correlation_id": correlation_id},
        status=status.HTTP_404_NOT_FOUND,
    )


def bad_request(message, correlation_id):
    return Response(
        {"detail": message, "correlation_id": correlation_id},
        status=status.HTTP_400_BAD_REQUEST,
    )


class HealthCheckAPIView(GenericAPIView):
    def get(self, request):

        correlation_id = get_correlation_id(request)

        logger.info("healthcheck_requested", extra={"correlation_id": correlation_id})

        status_obj = {"status": "ok", "correlation_id": correlation_id}

        # DB Check
        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1;")
        except Exception as e:
            logger.error("database_unhealthy", extra={"error": str(e)})
            status_obj["database"] = f"error: {str(e)}"
            status_obj["status"] = "unhealthy"
        else:
            status_obj["database"] = "ok"

        # Redis Check
        try:
            r = redis.Redis.from_url(settings.CELERY_BROKER_URL, socket_connect_timeout=2)
            r.ping()
        except Exception as e:
            logger.error("redis_unhealthy", extra={"error": str(e)})
            status_obj["redis"] = f"error: {str(e)}"
            status_obj["status"] = "unhealthy"
        else:
            status_obj["redis"] = "ok"

        logger.info("healthcheck_response", extra={"correlation_id": correlation_id, "status": status_obj["status"]})

        return JsonResponse(status_obj)


class BatchCollectionAPIView(APIView):
    parser_classes = [MultiPartParser, FormParser]

    def get(self, request):
        correlation_id = get_correlation_id(request)
        page, limit = coerce_paging(request.query_params.get("page"), request.query_params.get("limit"))
        status_filter = request.query_params.get('status') or None

        batches, total = BatchService().list_batches(page, limit, status_filter)

        logger.info(
            "batch_list_response",
            extra={"correlation_id": correlation_id, "status": status_filter or "-"},
        )
        return Response({
            "batches": BatchSerializer(batches, many=True).data,
            "total": total,
            "page": page,
            "limit": limit,
            "correlation_id": correlation_id,
        })

    def post(self, request):
        """Create a batch from an uploaded CSV/XLSX file."""
        start_time = time.time()
        correlation_id = get_correlation_id(request)

        upload = request.FILES.get('file')
        if upload is None:
            return bad_request("No file uploaded", correlation_id)

        if upload.size > settings.MAX_UPLOAD_SIZE:
            return bad_request(f"File size exceeds limit of {settings.MAX_UPLOAD_SIZE} bytes", correlation_id)

        logger.info(
            "batch_upload_received",
            extra={"correlation_id": correlation_id, "duration_sec": 0},
        )

        try:
            parsed = parse_upload(upload)
            batch = BatchService().create_batch(
                file_name=upload.name,
                original_file_name=upload.name,
                requisitions=parsed.requisitions,
                uploaded_by=request.data.get('uploaded_by') or None,
                metadata={
                    "file_size": upload.size,
                    "mime_type": upload.content_type,
                    "total_rows": parsed.total_rows,
                    "row_errors": parsed.errors,
                },
            )
        except BatchValidationError as e:
            logger.warning("batch_upload_rejected", extra={"correlation_id": correlation_id, "error": str(e)})
            return bad_request(f"Failed to process file: {e}", correlation_id)

        logger.info(
            "batch_upload_success",
            extra={
                "correlation_id": correlation_id,
                "batch_id": str(batch.id),
                "duration_sec": round(time.time() - start_time, 3),
            },
        )
        return Response(BatchSerializer(batch).data, status=status.HTTP_201_CREATED)


class BatchJsonAPIView(APIView):
    parser_classes = [JSONParser]

    def post(self, request):
        start_time = time.time()
        correlation_id = get_correlation_id(request)

        serializer = CreateBatchSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        logger.info(
            "creating_batch",
            extra={"correlation_id": correlation_id, "status": f"{len(data['requisitions'])} requisitions"},
        )

        try:
            batch = BatchService().create_batch(
                file_name=data['file_name'],
                original_file_name=data.get('original_file_name'),
                requisitions=data['requisitions'],
                metadata=data.get('metadata'),
                uploaded_by=data.get('uploaded_by'),
            )
        except BatchValidationError as e:
            return bad_request(str(e), correlation_id)

        logger.info(
            "batch_create_success",
            extra={
                "correlation_id": correlation_id,
                "batch_id": str(batch.id),
                "duration_sec": round(time.time() - start_time, 3),
            },
        )
        return Response(BatchSerializer(batch).data, status=status.HTTP_201_CREATED)


class BatchDetailAPIView(APIView):
    def get(self, request, batch_id):
        correlation_id = get_correlation_id(request)
        try:
            batch = BatchService().get_batch(batch_id)
        except BatchNotFound:
            return not_found(batch_id, correlation_id)
        return Response(BatchDetailSerializer(batch).data)


class BatchMetricsAPIView(APIView):
    def get(self, request, batch_id):
        correlation_id = get_correlation_id(request)
        try:
            metrics = BatchService().get_batch_metrics(batch_id)
        except BatchNotFound:
            return not_found(batch_id, correlation_id)
        return Response(BatchMetricsSerializer(metrics).data)


class BatchRetryAPIView(APIView):
    def post(self, request, batch_id):
        correlation_id = get_correlation_id(request)
        try:
            BatchService().retry_batch(batch_id)
        except BatchNotFound:
            return not_found(batch_id, correlation_id)
        except BatchStateConflict as e:
            logger.warning(
                "batch_retry_refused",
                extra={"correlation_id": correlation_id, "batch_id": str(batch_id), "error": str(e)},
            )
            return bad_request(str(e), correlation_id)

        return Response({"message": "Batch queued for retry", "correlation_id": correlation_id})


class BatchExportAPIView(APIView):
    def get(self, request, batch_id):
        correlation_id = get_correlation_id(request)
        try:
            batch = BatchService().get_batch(batch_id)
        except BatchNotFound:
            return not_found(batch_id, correlation_id)

        response = HttpResponse(export_batch_results(batch), content_type='text/csv')
        response['Content-Disposition'] = f'attachment; filename="batch-{batch.id}-results.csv"'
        return response


class BatchValidateAPIView(APIView):
    """Dry run of an upload: parse and check every row without creating a batch."""
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request):
        correlation_id = get_correlation_id(request)

        upload = request.FILES.get('file')
        if upload is None:
            return bad_request("No file uploaded", correlation_id)

        if upload.size > settings.MAX_UPLOAD_SIZE:
            return bad_request(f"File size exceeds limit of {settings.MAX_UPLOAD_SIZE} bytes", correlation_id)

        try:
            parsed = parse_upload(upload, require_valid=False)
        except BatchValidationError as e:
            return bad_request(f"File validation failed: {e}", correlation_id)

        logger.info(
            "batch_upload_validated",
            extra={"correlation_id": correlation_id, "status": f"{len(parsed.errors)} invalid rows"},
        )
        return Response({
            "requisitions": parsed.requisitions,
            "errors": parsed.errors,
            "metadata": {
                "total_rows": parsed.total_rows,
                "valid_rows": len(parsed.requisitions),
                "invalid_rows": len(parsed.errors),
            },
            "correlation_id": correlation_id,
        })


class BatchTemplateAPIView(APIView):
    def get(self, request):
        response = HttpResponse(template_csv(), content_type='text/csv')
        response['Content-Disposition'] = 'attachment; filename="requisition_template.csv"'
        return response


class RemoteRequisitionAPIView(APIView):
    def get(self, request, requisition_id):
        correlation_id = get_correlation_id(request)
        try:
            requisition, remote = BatchService().fetch_remote_requisition(requisition_id)
        except RequisitionNotFound as e:
            return Response({"detail": str(e), "correlation_id": correlation_id}, status=status.HTTP_404_NOT_FOUND)
        except BatchStateConflict as e:
            return bad_request(str(e), correlation_id)
        except FusionAPIError as e:
            logger.error(
                "remote_requisition_lookup_failed",
                extra={"correlation_id": correlation_id, "requisition_id": str(requisition_id), "error": e.message},
            )
            return Response(
                {"detail": e.message, "fusion_status": e.status_code, "correlation_id": correlation_id},
                status=status.HTTP_502_BAD_GATEWAY,
            )

        return Response({
            "requisition_id": str(requisition.id),
            "fusion_requisition_id": requisition.fusion_requisition_id,
            "remote": remote,
            "correlation_id": correlation_id,
        })
