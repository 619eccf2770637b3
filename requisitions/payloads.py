"""Mapping from stored requisitions to the Fusion purchaseRequisitions wire shape."""


def _compact(data):
    return {key: value for key, value in data.items() if value not in (None, "")}


def build_line_payload(line, default_location=None):
    distribution = _compact({
        "CostCenter": line.get("cost_center"),
        "ProjectNumber": line.get("project_number"),
    })
    payload = _compact({
        "ItemNumber": line.get("item_number"),
        "ItemDescription": line.get("description"),
        "SupplierNumber": line.get("supplier_number"),
        "Quantity": line.get("quantity"),
        "UnitPrice": line.get("unit_price"),
        "DeliverToLocation": line.get("deliver_to_location") or default_location,
    })
    payload["Distributions"] = [distribution] if distribution else []
    return payload


def build_create_payload(requisition, external_ref_field="ExternalReference"):
    header = _compact({
        "BusinessUnit": requisition.business_unit,
        "Requester": requisition.requester,
        "DeliverToLocation": requisition.deliver_to_location,
    })
    if requisition.external_reference:
        header[external_ref_field] = requisition.external_reference

    header["RequisitionLines"] = [
        build_line_payload(line, requisition.deliver_to_location)
        for line in (requisition.lines or [])
    ]
    return header
