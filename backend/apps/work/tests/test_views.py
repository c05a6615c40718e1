"""
API coverage for apps.work.views: tenant scoping, role checks, the full
create -> assign -> submit -> approve flow, and artifact upload.
"""

import os
import shutil
import tempfile
import uuid
from unittest.mock import patch

from django.core.files.uploadedfile import SimpleUploadedFile
from django.db import DatabaseError
from django.test import override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.payments.models import Payment
from apps.payments.tests.fakes import FAKE_PROCESSOR, FakeProcessor
from apps.work.models import WorkItem, WorkItemStatus
from core.tests.factories import (
    make_admin,
    make_business,
    make_business_user,
    make_contractor,
    make_contractor_user,
    make_work_item,
)


def _idem():
    return {"HTTP_IDEMPOTENCY_KEY": "work-" + uuid.uuid4().hex[:8]}


class WorkItemViewTestCase(APITestCase):
    def setUp(self):
        FakeProcessor.reset()
        self.business = make_business()
        self.contractor = make_contractor()
        self.owner = make_business_user(self.business)
        self.worker = make_contractor_user(self.contractor)
        self.rival_business = make_business("Rival")
        self.rival = make_business_user(self.rival_business, username="rival")

    def post(self, name, item=None, body=None, **headers):
        args = [item.id] if item is not None else []
        return self.client.post(
            reverse(f"work:{name}", args=args),
            body or {},
            format="json",
            **(headers or _idem()),
        )


class WorkItemCollectionTests(WorkItemViewTestCase):
    def test_create_requires_idempotency_key(self):
        self.client.force_authenticate(self.owner)
        response = self.client.post(
            reverse("work:list-or-create-work-items"), {"title": "Logo"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_and_replay(self):
        self.client.force_authenticate(self.owner)
        body = {"title": "Logo", "description": "Vector", "amount": "300.00", "publish": True}

        first = self.post("list-or-create-work-items", body=body, HTTP_IDEMPOTENCY_KEY="c-1")
        second = self.post("list-or-create-work-items", body=body, HTTP_IDEMPOTENCY_KEY="c-1")

        self.assertEqual(first.status_code, status.HTTP_201_CREATED, first.data)
        self.assertEqual(first.json()["data"]["status"], "OPEN")
        self.assertEqual(first.json()["data"]["businessId"], str(self.business.id))
        self.assertEqual(second.status_code, status.HTTP_200_OK)
        self.assertEqual(second.json()["data"]["id"], first.json()["data"]["id"])
        self.assertEqual(WorkItem.objects.count(), 1)

    def test_contractor_cannot_create(self):
        self.client.force_authenticate(self.worker)
        response = self.post("list-or-create-work-items", body={"title": "Logo"})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_is_scoped_to_tenant(self):
        mine = make_work_item(self.business, self.contractor)
        make_work_item(self.rival_business)
        make_work_item(self.business)

        self.client.force_authenticate(self.owner)
        response = self.client.get(reverse("work:list-or-create-work-items"))
        self.assertEqual(response.json()["count"], 2)

        self.client.force_authenticate(self.worker)
        response = self.client.get(reverse("work:list-or-create-work-items"))
        ids = [row["id"] for row in response.json()["results"]]
        self.assertEqual(ids, [str(mine.id)])

        self.client.force_authenticate(make_admin())
        response = self.client.get(reverse("work:list-or-create-work-items"))
        self.assertEqual(response.json()["count"], 3)

    def test_list_status_filter(self):
        make_work_item(self.business, status=WorkItemStatus.DRAFT, amount=None)
        make_work_item(self.business)
        self.client.force_authenticate(self.owner)
        response = self.client.get(
            reverse("work:list-or-create-work-items"), {"status": "DRAFT"}
        )
        self.assertEqual(response.json()["count"], 1)


class WorkItemDetailTests(WorkItemViewTestCase):
    def setUp(self):
        super().setUp()
        self.item = make_work_item(self.business, self.contractor)

    def test_owner_reads_item(self):
        self.client.force_authenticate(self.owner)
        response = self.client.get(
            reverse("work:get-or-update-work-item", args=[self.item.id])
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["data"]["submissions"], [])

    def test_other_business_cannot_read(self):
        self.client.force_authenticate(self.rival)
        response = self.client.get(
            reverse("work:get-or-update-work-item", args=[self.item.id])
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_unknown_item(self):
        self.client.force_authenticate(self.owner)
        response = self.client.get(
            reverse("work:get-or-update-work-item", args=[uuid.uuid4()])
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_patch(self):
        self.client.force_authenticate(self.owner)
        response = self.client.patch(
            reverse("work:get-or-update-work-item", args=[self.item.id]),
            {"amount": "650.00"},
            format="json",
            **_idem(),
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.json()["data"]["amount"], "650.00")

    def test_rival_cannot_cancel(self):
        self.client.force_authenticate(self.rival)
        response = self.post("cancel-work-item", self.item)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.item.refresh_from_db()
        self.assertEqual(self.item.status, WorkItemStatus.OPEN)

    def test_contractor_cannot_assign(self):
        self.client.force_authenticate(self.worker)
        response = self.post(
            "assign-work-item", self.item, {"contractorId": str(self.contractor.id)}
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_reject_without_notes(self):
        WorkItem.objects.filter(id=self.item.id).update(status=WorkItemStatus.SUBMITTED)
        self.client.force_authenticate(self.owner)
        response = self.post("reject-work-item", self.item)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_illegal_transition_is_conflict(self):
        self.client.force_authenticate(self.owner)
        response = self.post("publish-work-item", self.item)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.json()["error"]["details"]["currentState"], "OPEN")


class DraftVisibilityTests(WorkItemViewTestCase):
    def setUp(self):
        super().setUp()
        self.draft = make_work_item(
            self.business, self.contractor, status=WorkItemStatus.DRAFT
        )

    def test_contractor_list_hides_drafts(self):
        self.client.force_authenticate(self.worker)
        response = self.client.get(reverse("work:list-or-create-work-items"))
        self.assertEqual(response.json()["count"], 0)

        response = self.client.get(
            reverse("work:list-or-create-work-items"), {"status": "DRAFT"}
        )
        self.assertEqual(response.json()["count"], 0)

    def test_contractor_cannot_read_draft(self):
        self.client.force_authenticate(self.worker)
        response = self.client.get(
            reverse("work:get-or-update-work-item", args=[self.draft.id])
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.json()["error"]["details"]["reason"], "NOT_ASSIGNED")

        response = self.client.get(
            reverse("work:list-or-create-submissions", args=[self.draft.id])
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_published_item_becomes_visible(self):
        self.client.force_authenticate(self.owner)
        response = self.post("publish-work-item", self.draft)
        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)

        self.client.force_authenticate(self.worker)
        response = self.client.get(
            reverse("work:get-or-update-work-item", args=[self.draft.id])
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.json()["data"]["status"], "OPEN")

    def test_owner_still_reads_draft(self):
        self.client.force_authenticate(self.owner)
        response = self.client.get(
            reverse("work:get-or-update-work-item", args=[self.draft.id])
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)


@override_settings(PAYMENT_PROCESSOR=FAKE_PROCESSOR)
class WorkFlowTests(WorkItemViewTestCase):
    def test_full_flow_pays_once(self):
        self.client.force_authenticate(self.owner)
        created = self.post(
            "list-or-create-work-items",
            body={
                "title": "Landing page",
                "description": "Build it",
                "amount": "500.00",
                "publish": True,
            },
        ).json()["data"]
        item = WorkItem.objects.get(id=created["id"])

        response = self.post(
            "assign-work-item", item, {"contractorId": str(self.contractor.id)}
        )
        self.assertEqual(response.json()["data"]["status"], "ASSIGNED")

        self.client.force_authenticate(self.worker)
        self.assertEqual(self.post("accept-work-item", item).status_code, 200)
        response = self.post(
            "list-or-create-submissions",
            item,
            {"artifacts": ["https://files.example.com/site.zip"], "notes": "Done"},
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.json()["data"]["sequence"], 1)

        # A contractor cannot approve its own work
        self.assertEqual(
            self.post("approve-work-item", item).status_code, status.HTTP_403_FORBIDDEN
        )

        self.client.force_authenticate(self.owner)
        response = self.post("approve-work-item", item, {"reviewNotes": "Great"})
        self.assertEqual(response.status_code, status.HTTP_202_ACCEPTED)
        self.assertEqual(Payment.objects.filter(work_item=item).count(), 1)

        history = self.client.get(
            reverse("work:list-or-create-submissions", args=[item.id])
        ).json()["data"]
        self.assertEqual(history[0]["reviewStatus"], "APPROVED")

    def test_empty_artifact_list_is_rejected(self):
        item = make_work_item(self.business, self.contractor, status=WorkItemStatus.ASSIGNED)
        self.client.force_authenticate(self.worker)
        response = self.post("list-or-create-submissions", item, {"artifacts": []})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_other_contractor_cannot_submit(self):
        item = make_work_item(self.business, self.contractor, status=WorkItemStatus.ASSIGNED)
        stranger = make_contractor_user(make_contractor("Stranger"), username="stranger")
        self.client.force_authenticate(stranger)
        response = self.post(
            "list-or-create-submissions", item, {"artifacts": ["https://x.example/a"]}
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.json()["error"]["details"]["reason"], "NOT_ASSIGNED")


class ArtifactTests(WorkItemViewTestCase):
    def setUp(self):
        super().setUp()
        self.media_root = tempfile.mkdtemp()
        self.override = override_settings(MEDIA_ROOT=self.media_root)
        self.override.enable()
        self.item = make_work_item(
            self.business, self.contractor, status=WorkItemStatus.ASSIGNED
        )

    def tearDown(self):
        self.override.disable()
        shutil.rmtree(self.media_root, ignore_errors=True)

    def _upload(self, name="report.pdf", content=b"%PDF-1.4"):
        return self.client.post(
            reverse("work:upload-or-download-artifact", args=[self.item.id]),
            {"file": SimpleUploadedFile(name, content)},
            format="multipart",
            **_idem(),
        )

    def test_upload_then_download(self):
        self.client.force_authenticate(self.worker)
        response = self._upload()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        ref = response.json()["data"]["ref"]
        self.assertTrue(ref.startswith(f"artifacts/{self.item.id}/"))

        self.client.force_authenticate(self.owner)
        download = self.client.get(
            reverse("work:upload-or-download-artifact", args=[self.item.id]),
            {"ref": ref},
        )
        self.assertEqual(download.status_code, status.HTTP_200_OK)
        self.assertEqual(b"".join(download.streaming_content), b"%PDF-1.4")

    def test_ref_of_another_item_is_not_served(self):
        self.client.force_authenticate(self.owner)
        response = self.client.get(
            reverse("work:upload-or-download-artifact", args=[self.item.id]),
            {"ref": f"artifacts/{uuid.uuid4()}/secret.pdf"},
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_business_cannot_upload(self):
        self.client.force_authenticate(self.owner)
        self.assertEqual(self._upload().status_code, status.HTTP_403_FORBIDDEN)

    def test_upload_after_submission_is_refused(self):
        WorkItem.objects.filter(id=self.item.id).update(status=WorkItemStatus.SUBMITTED)
        self.client.force_authenticate(self.worker)
        self.assertEqual(
            self._upload().status_code, status.HTTP_412_PRECONDITION_FAILED
        )

    def _stored_files(self):
        return [name for _, _, names in os.walk(self.media_root) for name in names]

    def test_refused_upload_stores_nothing(self):
        WorkItem.objects.filter(id=self.item.id).update(status=WorkItemStatus.APPROVED)
        self.client.force_authenticate(self.worker)
        self._upload()
        self.assertEqual(self._stored_files(), [])

    def test_blob_is_removed_when_audit_fails(self):
        self.client.force_authenticate(self.worker)
        with patch(
            "apps.work.services.audit_as", side_effect=DatabaseError("audit unavailable")
        ):
            with self.assertRaises(DatabaseError):
                self._upload()
        self.assertEqual(self._stored_files(), [])
