from rest_framework import serializers

from .models import Batch, Requisition

class RequisitionLineSerializer(serializers.Serializer):
    item_number = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    description = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    supplier_number = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    quantity = serializers.FloatField()
    unit_price = serializers.FloatField(min_value=0)
    cost_center = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    project_number = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    deliver_to_location = serializers.CharField(required=False, allow_null=True, allow_blank=True)

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError("Quantity must be greater than 0")
        return value

    def validate(self, attrs):
        if not attrs.get('item_number') and not attrs.get('description'):
            raise serializers.ValidationError("Line must have either item_number or description")
        return attrs

class RequisitionInputSerializer(serializers.Serializer):
    business_unit = serializers.CharField()
    requester = serializers.CharField()
    deliver_to_location = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    description = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    external_reference = serializers.CharField(required=False, allow_null=True, allow_blank=True)
    submit = serializers.BooleanField(required=False, default=False)
    lines = RequisitionLineSerializer(many=True, allow_empty=False)

class CreateBatchSerializer(serializers.Serializer):
    file_name = serializers.CharField(max_length=255)
    original_file_name = serializers.CharField(max_length=255, required=False, allow_null=True)
    requisitions = RequisitionInputSerializer(many=True, allow_empty=False)
    metadata = serializers.JSONField(required=False, allow_null=True)
    uploaded_by = serializers.CharField(max_length=255, required=False, allow_null=True)

class RequisitionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Requisition
        fields = [
            'id', 'batch', 'business_unit', 'requester', 'deliver_to_location',
            'external_reference', 'fusion_requisition_id', 'requisition_number',
            'status', 'error_message', 'request_payload', 'response_payload', 'lines',
            'submitted', 'submitted_at', 'approved_at', 'created_at', 'updated_at',
        ]

class BatchSerializer(serializers.ModelSerializer):
    class Meta:
        model = Batch
        fields = [
            'id', 'file_name', 'original_file_name', 'status', 'total_items',
            'processed_items', 'successful_items', 'failed_items', 'error_message',
            'metadata', 'uploaded_by', 'created_at', 'updated_at',
        ]

class BatchDetailSerializer(BatchSerializer):
    requisitions = RequisitionSerializer(many=True, read_only=True)

    class Meta(BatchSerializer.Meta):
        fields = BatchSerializer.Meta.fields + ['requisitions']

class BatchMetricsSerializer(serializers.Serializer):
    total_items = serializers.IntegerField()
    processed_items = serializers.IntegerField()
    successful_items = serializers.IntegerField()
    failed_items = serializers.IntegerField()
    processing_time = serializers.FloatField()
    average_processing_time = serializers.FloatField()
