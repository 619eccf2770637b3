from unittest import mock

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from requisitions.fusion import FusionAPIError
from requisitions.models import Batch, Requisition

from .factories import fusion_client, make_batch, make_requisition, requisition_input


class BatchApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        patcher = mock.patch('requisitions.services.process_requisition.apply_async')
        self.apply_async = patcher.start()
        self.addCleanup(patcher.stop)

    def test_create_batch_from_json(self):
        payload = {
            "file_name": "manual.json",
            "requisitions": [requisition_input(external_reference='EXT-1', submit=True), requisition_input()],
            "metadata": {"channel": "api"},
        }

        r = self.client.post(reverse('batch-create-json'), payload, format='json', HTTP_X_CORRELATION_ID='cid-123')

        self.assertEqual(r.status_code, 201)
        self.assertEqual(r.data['total_items'], 2)
        self.assertEqual(r.data['status'], Batch.STATUS_PROCESSING)
        self.assertEqual(r['X-Correlation-ID'], 'cid-123')
        self.assertEqual(Requisition.objects.filter(batch_id=r.data['id']).count(), 2)
        self.assertEqual(self.apply_async.call_count, 2)
        self.assertEqual(self.apply_async.call_args.kwargs['kwargs'], {'correlation_id': 'cid-123'})

    def test_create_batch_from_json_rejects_empty_requisitions(self):
        r = self.client.post(
            reverse('batch-create-json'), {"file_name": "x.json", "requisitions": []}, format='json',
        )

        self.assertEqual(r.status_code, 400)
        self.assertEqual(Batch.objects.count(), 0)

    def test_create_batch_from_json_rejects_bad_line(self):
        item = requisition_input()
        item['lines'][0]['quantity'] = 0

        r = self.client.post(
            reverse('batch-create-json'), {"file_name": "x.json", "requisitions": [item]}, format='json',
        )

        self.assertEqual(r.status_code, 400)
        self.assertEqual(Batch.objects.count(), 0)

    def test_upload_csv_creates_batch(self):
        content = (
            "business_unit,requester,item_number,quantity,unit_price,external_ref,submit\n"
            "BU Rio,joao@example.com,ITM-1,3,10.5,EXT-A,true\n"
            "BU Rio,joao@example.com,ITM-2,1,99,EXT-B,false\n"
        ).encode()
        upload = SimpleUploadedFile('reqs.csv', content, content_type='text/csv')

        r = self.client.post(reverse('batch-list'), {'file': upload}, format='multipart')

        self.assertEqual(r.status_code, 201)
        self.assertEqual(r.data['total_items'], 2)
        self.assertEqual(r.data['file_name'], 'reqs.csv')
        self.assertEqual(r.data['metadata']['total_rows'], 2)

    def test_upload_without_file(self):
        r = self.client.post(reverse('batch-list'), {}, format='multipart')

        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.data['detail'], 'No file uploaded')

    def test_upload_unsupported_format(self):
        upload = SimpleUploadedFile('reqs.txt', b'hello', content_type='text/plain')

        r = self.client.post(reverse('batch-list'), {'file': upload}, format='multipart')

        self.assertEqual(r.status_code, 400)
        self.assertIn('Unsupported file format', r.data['detail'])

    def test_upload_too_large(self):
        upload = SimpleUploadedFile('reqs.csv', b'business_unit\n' + b'x' * 64, content_type='text/csv')

        with self.settings(MAX_UPLOAD_SIZE=10):
            r = self.client.post(reverse('batch-list'), {'file': upload}, format='multipart')

        self.assertEqual(r.status_code, 400)
        self.assertIn('exceeds limit', r.data['detail'])

    def test_list_batches(self):
        make_batch(status=Batch.STATUS_COMPLETED)
        make_batch(status=Batch.STATUS_FAILED)

        r = self.client.get(reverse('batch-list'), {'status': Batch.STATUS_FAILED, 'page': 1, 'limit': 5})

        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.data['total'], 1)
        self.assertEqual(r.data['batches'][0]['status'], Batch.STATUS_FAILED)
        self.assertEqual((r.data['page'], r.data['limit']), (1, 5))

    def test_get_batch_detail_and_not_found(self):
        batch = make_batch(total_items=1)
        make_requisition(batch)

        r = self.client.get(reverse('batch-detail', args=[batch.id]))
        missing = self.client.get(reverse('batch-detail', args=['0b5c5f0e-5f59-4e47-a1a4-7d6b1e8d2c00']))

        self.assertEqual(r.status_code, 200)
        self.assertEqual(len(r.data['requisitions']), 1)
        self.assertEqual(missing.status_code, 404)

    def test_batch_metrics(self):
        batch = make_batch(total_items=2, processed_items=1, successful_items=1)

        r = self.client.get(reverse('batch-metrics', args=[batch.id]))

        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.data['total_items'], 2)
        self.assertEqual(r.data['processed_items'], 1)
        self.assertIn('average_processing_time', r.data)

    def test_retry_batch(self):
        batch = make_batch(total_items=1, status=Batch.STATUS_FAILED)
        make_requisition(batch, status=Requisition.STATUS_FAILED)

        r = self.client.post(reverse('batch-retry', args=[batch.id]))

        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.data['message'], 'Batch queued for retry')
        self.apply_async.assert_called_once()

    def test_retry_batch_while_processing(self):
        batch = make_batch(total_items=1, status=Batch.STATUS_PROCESSING)

        r = self.client.post(reverse('batch-retry', args=[batch.id]))

        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.data['detail'], 'Batch is currently processing')
        self.apply_async.assert_not_called()

    def test_export_batch_results(self):
        batch = make_batch(total_items=1)
        make_requisition(
            batch, status=Requisition.STATUS_CREATED,
            fusion_requisition_id='300', requisition_number='REQ-300',
        )

        r = self.client.get(reverse('batch-export', args=[batch.id]))

        self.assertEqual(r.status_code, 200)
        self.assertEqual(r['Content-Type'], 'text/csv')
        body = r.content.decode()
        self.assertIn('requisition_number', body.splitlines()[0])
        self.assertIn('REQ-300', body)


class UploadToolsApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()

    def test_validate_reports_rows_without_creating_a_batch(self):
        content = (
            "business_unit,requester,item_number,quantity\n"
            "BU Rio,joao@example.com,ITM-1,3\n"
            ",joao@example.com,ITM-2,1\n"
        ).encode()
        upload = SimpleUploadedFile('reqs.csv', content, content_type='text/csv')

        r = self.client.post(reverse('batch-validate'), {'file': upload}, format='multipart')

        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.data['metadata'], {"total_rows": 2, "valid_rows": 1, "invalid_rows": 1})
        self.assertTrue(r.data['errors'][0].startswith('Row 3 error'))
        self.assertEqual(Batch.objects.count(), 0)

    def test_validate_with_no_valid_rows_still_answers(self):
        upload = SimpleUploadedFile('reqs.csv', b"business_unit,requester\n,\n", content_type='text/csv')

        r = self.client.post(reverse('batch-validate'), {'file': upload}, format='multipart')

        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.data['metadata']['valid_rows'], 0)

    def test_validate_rejects_unsupported_format(self):
        upload = SimpleUploadedFile('reqs.txt', b'hello', content_type='text/plain')

        r = self.client.post(reverse('batch-validate'), {'file': upload}, format='multipart')

        self.assertEqual(r.status_code, 400)
        self.assertIn('File validation failed', r.data['detail'])

    def test_template_download(self):
        r = self.client.get(reverse('batch-template'))

        self.assertEqual(r.status_code, 200)
        self.assertEqual(r['Content-Type'], 'text/csv')
        self.assertIn('requisition_template.csv', r['Content-Disposition'])
        self.assertTrue(r.content.decode().startswith('business_unit,requester,'))


class RemoteRequisitionApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.fusion = fusion_client()
        patcher = mock.patch('requisitions.services.get_fusion_client', return_value=self.fusion)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_returns_live_fusion_record(self):
        req = make_requisition(make_batch(total_items=1), status=Requisition.STATUS_CREATED, fusion_requisition_id='300')
        self.fusion.get_requisition.return_value = {"RequisitionHeaderId": 300, "DocumentStatus": "Approved"}

        r = self.client.get(reverse('requisition-remote', args=[req.id]))

        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.data['remote']['DocumentStatus'], 'Approved')
        self.fusion.get_requisition.assert_called_once_with('300')

    def test_not_yet_created_remotely(self):
        req = make_requisition(make_batch(total_items=1))

        r = self.client.get(reverse('requisition-remote', args=[req.id]))

        self.assertEqual(r.status_code, 400)
        self.fusion.get_requisition.assert_not_called()

    def test_unknown_requisition(self):
        r = self.client.get(reverse('requisition-remote', args=['not-a-uuid']))

        self.assertEqual(r.status_code, 404)

    def test_fusion_error_is_a_bad_gateway(self):
        req = make_requisition(make_batch(total_items=1), status=Requisition.STATUS_CREATED, fusion_requisition_id='300')
        self.fusion.get_requisition.side_effect = FusionAPIError("Not Found", status_code=404)

        r = self.client.get(reverse('requisition-remote', args=[req.id]))

        self.assertEqual(r.status_code, 502)
        self.assertEqual(r.data['fusion_status'], 404)
