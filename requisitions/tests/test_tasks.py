from unittest import mock

import requests
from django.test import TestCase, override_settings

from requisitions.fusion import FusionAPIError, FusionClient, FusionConfig
from requisitions.models import Batch, Requisition
from requisitions.services import BatchService
from requisitions.tasks import process_requisition, retry_countdown

from .factories import fusion_client, make_batch, make_requisition


class ProcessRequisitionTaskTests(TestCase):
    def setUp(self):
        self.client = fusion_client()
        patcher = mock.patch('requisitions.tasks.get_fusion_client', return_value=self.client)
        patcher.start()
        self.addCleanup(patcher.stop)

    def _run(self, req):
        return process_requisition.apply(args=[str(req.batch_id), str(req.id)])

    def test_scenario_mixed_batch_partially_fails(self):
        batch = make_batch(total_items=3)
        submitted = make_requisition(batch, submit=True)
        created = make_requisition(batch, submit=False)
        failing = make_requisition(batch, external_reference='EXT-FAIL')

        def create(payload):
            if payload.get('ExternalReference') == 'EXT-FAIL':
                raise FusionAPIError("Invalid supplier", status_code=400)
            return {"RequisitionHeaderId": 42, "RequisitionNumber": "REQ-42"}

        self.client.create_requisition.side_effect = create

        for req in (submitted, created, failing):
            self._run(req)

        statuses = {
            r.id: r.status for r in Requisition.objects.filter(batch=batch)
        }
        self.assertEqual(statuses[submitted.id], Requisition.STATUS_SUBMITTED)
        self.assertEqual(statuses[created.id], Requisition.STATUS_CREATED)
        self.assertEqual(statuses[failing.id], Requisition.STATUS_FAILED)

        batch.refresh_from_db()
        self.assertEqual(batch.processed_items, 3)
        self.assertEqual(batch.successful_items, 2)
        self.assertEqual(batch.failed_items, 1)
        self.assertEqual(batch.status, Batch.STATUS_PARTIALLY_FAILED)

    def test_create_failure_is_retried_up_to_the_attempt_ceiling(self):
        batch = make_batch(total_items=1)
        req = make_requisition(batch)
        self.client.create_requisition.side_effect = FusionAPIError("Service unavailable", status_code=503)

        result = self._run(req)

        self.assertTrue(result.failed())
        self.assertEqual(self.client.create_requisition.call_count, 3)
        req.refresh_from_db()
        self.assertEqual(req.status, Requisition.STATUS_FAILED)
        self.assertEqual(req.error_message, "Service unavailable")
        batch.refresh_from_db()
        self.assertEqual(batch.status, Batch.STATUS_FAILED)

    def test_transient_failure_recovers_on_retry(self):
        batch = make_batch(total_items=1)
        req = make_requisition(batch)
        self.client.create_requisition.side_effect = [
            FusionAPIError("Gateway timeout", status_code=504),
            {"RequisitionHeaderId": 7, "RequisitionNumber": "REQ-7"},
        ]

        result = self._run(req)

        self.assertTrue(result.successful())
        req.refresh_from_db()
        self.assertEqual(req.status, Requisition.STATUS_CREATED)
        batch.refresh_from_db()
        self.assertEqual(batch.status, Batch.STATUS_COMPLETED)

    def test_duplicate_is_not_retried(self):
        batch = make_batch(total_items=1)
        req = make_requisition(batch, external_reference='EXT-DUP')
        self.client.find_by_external_reference.return_value = {"items": [{"Id": 1}]}

        result = self._run(req)

        self.assertTrue(result.successful())
        self.assertEqual(result.result['kind'], 'duplicate')
        self.assertEqual(self.client.find_by_external_reference.call_count, 1)
        req.refresh_from_db()
        self.assertEqual(req.error_message, "Duplicate external reference")

    def test_all_submitted_batch_completes(self):
        batch = make_batch(total_items=3)
        reqs = [make_requisition(batch, submit=True) for _ in range(3)]

        for req in reqs:
            self._run(req)

        batch.refresh_from_db()
        self.assertEqual(batch.status, Batch.STATUS_COMPLETED)
        self.assertEqual(batch.successful_items, 3)
        self.assertEqual(batch.failed_items, 0)

    def test_all_failing_batch_fails(self):
        batch = make_batch(total_items=2)
        reqs = [make_requisition(batch) for _ in range(2)]
        self.client.create_requisition.side_effect = FusionAPIError("Unauthorized", status_code=401)

        for req in reqs:
            self._run(req)

        batch.refresh_from_db()
        self.assertEqual(batch.status, Batch.STATUS_FAILED)
        self.assertEqual(batch.successful_items, 0)
        self.assertEqual(batch.failed_items, 2)

    def test_missing_requisition_fails_without_retry(self):
        batch = make_batch(total_items=1)

        result = process_requisition.apply(args=[str(batch.id), '8d0c1c9e-4a39-4c55-9d0e-0a4b5d3f6e11'])

        self.assertTrue(result.failed())
        self.client.create_requisition.assert_not_called()

    @override_settings(REQUISITION_RETRY_BACKOFF=5)
    def test_backoff_doubles_per_retry(self):
        self.assertEqual([retry_countdown(n) for n in range(3)], [5, 10, 20])


class GatewayPageTaskTests(TestCase):
    def test_html_success_page_fails_requisition_and_frees_batch(self):
        session = mock.Mock(spec=requests.Session)
        session.headers = {}
        page = requests.Response()
        page.status_code = 200
        page._content = b"<html>Oracle SSO login</html>"
        session.request.return_value = page
        client = FusionClient(
            FusionConfig(base_url='https://fusion.example.com', username='u', password='p'),
            session=session,
        )
        batch = make_batch(total_items=1)
        req = make_requisition(batch)

        with mock.patch('requisitions.tasks.get_fusion_client', return_value=client):
            result = process_requisition.apply(args=[str(batch.id), str(req.id)])

        self.assertTrue(result.failed())
        req.refresh_from_db()
        self.assertEqual(req.status, Requisition.STATUS_FAILED)
        self.assertEqual(req.error_message, "Invalid JSON response from Fusion")
        batch.refresh_from_db()
        self.assertEqual(batch.status, Batch.STATUS_FAILED)

        with mock.patch('requisitions.services.process_requisition.apply_async'):
            self.assertEqual(BatchService().retry_batch(batch.id), 1)
