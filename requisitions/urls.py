from django.urls import path
from .views import (
    BatchCollectionAPIView,
    BatchDetailAPIView,
    BatchExportAPIView,
    BatchJsonAPIView,
    BatchMetricsAPIView,
    BatchRetryAPIView,
    BatchTemplateAPIView,
    BatchValidateAPIView,
    HealthCheckAPIView,
    RemoteRequisitionAPIView,
)

urlpatterns = [
    path('health/', HealthCheckAPIView.as_view(), name='health-check'),
    path('batches/', BatchCollectionAPIView.as_view(), name='batch-list'),
    path('batches/json/', BatchJsonAPIView.as_view(), name='batch-create-json'),
    path('batches/validate/', BatchValidateAPIView.as_view(), name='batch-validate'),
    path('batches/template/', BatchTemplateAPIView.as_view(), name='batch-template'),
    path('batches/<str:batch_id>/', BatchDetailAPIView.as_view(), name='batch-detail'),
    path('batches/<str:batch_id>/metrics/', BatchMetricsAPIView.as_view(), name='batch-metrics'),
    path('batches/<str:batch_id>/retry/', BatchRetryAPIView.as_view(), name='batch-retry'),
    path('batches/<str:batch_id>/export/', BatchExportAPIView.as_view(), name='batch-export'),
    path('requisitions/<str:requisition_id>/remote/', RemoteRequisitionAPIView.as_view(), name='requisition-remote'),
]
