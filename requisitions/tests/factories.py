from unittest import mock

from requisitions.fusion import FusionClient
from requisitions.models import Batch, Requisition


def requisition_input(external_reference=None, submit=False, **overrides):
    data = {
        "business_unit": "BU Sao Paulo",
        "requester": "ana.souza@example.com",
        "deliver_to_location": "MAIN-WAREHOUSE",
        "external_reference": external_reference,
        "submit": submit,
        "lines": [{
            "item_number": "ITM-1001",
            "description": "Notebook 14in",
            "supplier_number": "SUP-100",
            "quantity": 2,
            "unit_price": 1500.0,
            "cost_center": "CC-10",
            "project_number": None,
        }],
    }
    data.update(overrides)
    return data


def make_batch(total_items=0, **kwargs):
    kwargs.setdefault('file_name', 'requisitions.csv')
    kwargs.setdefault('status', Batch.STATUS_PROCESSING)
    return Batch.objects.create(total_items=total_items, **kwargs)


def make_requisition(batch, status=Requisition.STATUS_PENDING, **kwargs):
    payload = requisition_input(
        external_reference=kwargs.pop('external_reference', None),
        submit=kwargs.pop('submit', False),
    )
    return Requisition.objects.create(
        batch=batch,
        business_unit=payload['business_unit'],
        requester=payload['requester'],
        deliver_to_location=payload['deliver_to_location'],
        external_reference=payload['external_reference'],
        request_payload=payload,
        lines=payload['lines'],
        status=status,
        **kwargs
    )


def fusion_client(create_response=None):
    client = mock.Mock(spec=FusionClient)
    client.find_by_external_reference.return_value = {"items": []}
    client.create_requisition.return_value = create_response or {
        "RequisitionHeaderId": 300000123,
        "RequisitionNumber": "REQ-0001",
    }
    client.submit_requisition.return_value = {"result": "SUCCESS"}
    return client
