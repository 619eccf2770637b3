"""
Turn uploaded CSV/XLSX files into requisition input items, and render batch
results back out as CSV.

Column headers are matched case-insensitively against a list of aliases so
that exports from different spreadsheets (English or Portuguese headers)
load without remapping. Each data row becomes one requisition with one line.
"""
import csv
import io
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List

from .exceptions import IngestionError

logger = logging.getLogger(__name__)

COLUMN_ALIASES = {
    'business_unit': ['business_unit', 'businessunit', 'bu', 'empresa', 'unidade'],
    'requester': ['requester', 'solicitante', 'user', 'username', 'email'],
    'deliver_to_location': ['deliver_to', 'deliverto', 'deliver_to_location', 'local_entrega', 'location'],
    'external_reference': ['external_ref', 'external_reference', 'externalreference', 'referencia', 'id_externo'],
    'item_number': ['item_number', 'itemnumber', 'item', 'codigo_item'],
    'description': ['description', 'desc', 'descricao', 'item_description'],
    'supplier_number': ['supplier_number', 'suppliernumber', 'fornecedor', 'supplier'],
    'quantity': ['quantity', 'qty', 'quantidade'],
    'unit_price': ['unit_price', 'unitprice', 'preco', 'price', 'valor'],
    'cost_center': ['cost_center', 'costcenter', 'centro_custo', 'cc'],
    'project_number': ['project_number', 'projectnumber', 'projeto', 'project'],
    'submit': ['submit', 'enviar'],
}

TRUE_VALUES = {'true', '1', 'yes', 'y', 'sim'}

TEMPLATE_COLUMNS = [
    'business_unit', 'requester', 'deliver_to_location', 'external_reference', 'item_number',
    'description', 'supplier_number', 'quantity', 'unit_price', 'cost_center', 'project_number', 'submit',
]

TEMPLATE_ROWS = [
    ['BU001', 'user@company.com', 'LOC001', 'REF001', 'ITEM001', 'Office Supplies', 'SUP001', '10', '25.50', 'CC001', 'PROJ001', 'true'],
    ['BU001', 'user@company.com', 'LOC001', 'REF002', 'ITEM002', 'Software License', 'SUP002', '1', '1000.00', 'CC002', 'PROJ002', 'false'],
]

EXPORT_COLUMNS = [
    'requisition_id', 'business_unit', 'requester', 'external_reference', 'status',
    'fusion_requisition_id', 'requisition_number', 'submitted', 'submitted_at', 'error_message',
]


@dataclass
class ParsedFile:
    requisitions: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    total_rows: int = 0


def _normalize_header(value):
    if value is None:
        return ''
    return str(value).strip().lower()


def _is_blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def map_row(row: Dict[str, Any]) -> Dict[str, Any]:
    normalized = {_normalize_header(key): value for key, value in row.items()}
    mapped = {}
    for target, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            value = normalized.get(alias)
            if not _is_blank(value):
                mapped[target] = value.strip() if isinstance(value, str) else value
                break
    return mapped


def _to_float(value, default):
    if _is_blank(value):
        return default
    try:
        return float(str(value).replace(',', '.')) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid number: {value}")


def _text(value):
    if _is_blank(value):
        return None
    if isinstance(value, float) and value == int(value):
        value = int(value)
    return str(value)


def row_to_requisition(row: Dict[str, Any]) -> Dict[str, Any]:
    data = map_row(row)

    if not data.get('business_unit') or not data.get('requester'):
        raise ValueError("Missing required fields: business_unit and requester")
    if not data.get('item_number') and not data.get('description'):
        raise ValueError("Line must have either item_number or description")

    quantity = _to_float(data.get('quantity'), 1.0)
    unit_price = _to_float(data.get('unit_price'), 0.0)
    if quantity <= 0:
        raise ValueError("Quantity must be greater than 0")
    if unit_price < 0:
        raise ValueError("Unit price cannot be negative")

    line = {
        'item_number': _text(data.get('item_number')),
        'description': _text(data.get('description')),
        'supplier_number': _text(data.get('supplier_number')),
        'quantity': quantity,
        'unit_price': unit_price,
        'cost_center': _text(data.get('cost_center')),
        'project_number': _text(data.get('project_number')),
        'deliver_to_location': _text(data.get('deliver_to_location')),
    }

    return {
        'business_unit': _text(data['business_unit']),
        'requester': _text(data['requester']),
        'deliver_to_location': _text(data.get('deliver_to_location')),
        'external_reference': _text(data.get('external_reference')),
        'lines': [line],
        'submit': str(data.get('submit', '')).strip().lower() in TRUE_VALUES,
    }


def read_csv_rows(content: bytes) -> Iterator[Dict[str, Any]]:
    # utf-8-sig strips the BOM Excel adds to CSV exports
    text = content.decode('utf-8-sig')
    yield from csv.DictReader(io.StringIO(text))


def read_xlsx_rows(content: bytes) -> Iterator[Dict[str, Any]]:
    import openpyxl

    wb = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    try:
        sheet = wb.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header = next(rows, None)
        if header is None:
            return
        headers = [_normalize_header(cell) for cell in header]
        for values in rows:
            if all(_is_blank(value) for value in values):
                continue
            yield {h: v for h, v in zip(headers, values) if h}
    finally:
        wb.close()


READERS = {
    '.csv': read_csv_rows,
    '.xlsx': read_xlsx_rows,
}


def parse_rows(rows) -> ParsedFile:
    parsed = ParsedFile()
    # Header is row 1
    for row_number, row in enumerate(rows, start=2):
        parsed.total_rows += 1
        try:
            parsed.requisitions.append(row_to_requisition(row))
        except ValueError as e:
            parsed.errors.append(f"Row {row_number} error: {e}")
    return parsed


def parse_upload(uploaded_file, require_valid=True) -> ParsedFile:
    name = getattr(uploaded_file, 'name', '') or ''
    extension = os.path.splitext(name)[1].lower()
    reader = READERS.get(extension)
    if reader is None:
        raise IngestionError(f"Unsupported file format: {extension or name}")

    try:
        parsed = parse_rows(reader(uploaded_file.read()))
    except IngestionError:
        raise
    except Exception as e:
        raise IngestionError(f"Failed to read {extension} file: {e}") from e

    logger.info(
        f"parsed {name}: {len(parsed.requisitions)} valid, {len(parsed.errors)} errors",
    )

    if require_valid and not parsed.requisitions:
        raise IngestionError("No valid requisitions found in file")
    return parsed


def export_batch_results(batch) -> str:
    out = io.StringIO()
    writer = csv.writer(out)
    writer.writerow(EXPORT_COLUMNS)
    for req in batch.requisitions.all().order_by('created_at'):
        writer.writerow([
            req.id,
            req.business_unit,
            req.requester,
            req.external_reference or '',
            req.status,
            req.fusion_requisition_id or '',
            req.requisition_number or '',
            'true' if req.submitted else 'false',
            req.submitted_at.isoformat() if req.submitted_at else '',
            req.error_message or '',
        ])
    return out.getvalue()


def template_csv() -> str:
    """Sample upload file whose headers map one-to-one onto requisition fields."""
    out = io.StringIO()
    writer = csv.writer(out)
    writer.writerow(TEMPLATE_COLUMNS)
    writer.writerows(TEMPLATE_ROWS)
    return out.getvalue()
