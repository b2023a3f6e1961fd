"""
Integration tests for the patient-flow HTTP API.

These exercise the event endpoint end to end (role checks, payload
validation, the error envelope) and the read-only board endpoints, using
DRF's APIClient within APITestCase.
"""
import datetime
from decimal import Decimal

from django.core.cache import cache
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient, APITestCase

from ..models import Appointment, Bed, Patient, TriageEntry, User
from ..services import registry


class PatientFlowAPITests(APITestCase):
    def setUp(self) -> None:
        cache.clear()
        self.nurse = User.objects.create_user(username="nurse1", password="P@ssw0rd1", role="nurse")
        self.admin_user = User.objects.create_user(username="admin1", password="P@ssw0rd1", role="admin")
        self.gateway = User.objects.create_user(username="gateway", password="P@ssw0rd1", role="service")
        self.patient_user = User.objects.create_user(username="patient1", password="P@ssw0rd1", role="patient")
        self.other_user = User.objects.create_user(username="patient2", password="P@ssw0rd1", role="patient")
        self.patient = Patient.objects.create(name="Asha", user=self.patient_user)
        self.other_patient = Patient.objects.create(name="Bilal", user=self.other_user)
        self.clinician = registry.register_clinician(
            name="Dr. Mehta",
            department="General Medicine",
            session_start=datetime.time(9, 0),
            session_end=datetime.time(11, 0),
            consultation_fee=Decimal("400.00"),
        )

    def client_for(self, user: User) -> APIClient:
        client = APIClient()
        token, _ = Token.objects.get_or_create(user=user)
        client.credentials(HTTP_AUTHORIZATION=f"Token {token.key}")
        return client

    def send(self, user: User, event_type: str, payload: dict):
        return self.client_for(user).post("/api/events", {"type": event_type, "payload": payload}, format="json")

    # -- envelope & auth ---------------------------------------------------

    def test_events_require_authentication(self):
        resp = APIClient().post("/api/events", {"type": "AdmitPatient", "payload": {}}, format="json")
        self.assertIn(resp.status_code, (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN))
        self.assertFalse(resp.data["ok"])

    def test_bearer_keyword_is_accepted(self):
        token, _ = Token.objects.get_or_create(user=self.nurse)
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {token.key}")
        resp = client.get("/api/beds/board")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)

    def test_unknown_event_type(self):
        resp = self.send(self.nurse, "TeleportPatient", {})
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["error"]["code"], "unknown_event")

    def test_payload_validation_errors_use_envelope(self):
        resp = self.send(self.nurse, "AdmitPatient", {"triageLevel": "urgent"})
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["error"]["code"], "invalid")

    def test_role_gates_event_types(self):
        resp = self.send(self.patient_user, "AllocateBed", {"bedId": 1, "patientId": self.patient.pk})
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        resp = self.send(self.nurse, "RegisterBed", {
            "wardType": "icu", "floorNumber": 2, "roomNumber": "ICU", "bedNumber": "1",
        })
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        resp = self.send(self.nurse, "ConfirmPayment", {"appointmentId": 1, "outcome": "success"})
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    # -- triage ------------------------------------------------------------

    def test_admit_walk_in_and_board_order(self):
        first = self.send(self.nurse, "AdmitPatient", {
            "patient": {"name": "Walk <b>in</b>", "age": 40, "sex": "M"},
            "triageLevel": "minor",
            "chiefComplaint": "<script>x</script>sprained ankle",
            "vitals": {"heartRate": 80, "bloodPressure": "120/80"},
        })
        self.assertEqual(first.status_code, status.HTTP_200_OK, first.data)
        self.assertTrue(first.data["ok"])
        entry = first.data["data"]["entry"]
        self.assertEqual(entry["patientName"], "Walk in")
        self.assertNotIn("<script>", entry["chiefComplaint"])
        self.assertEqual(entry["vitals"]["heartRate"], 80)

        second = self.send(self.nurse, "AdmitPatient", {"patientId": self.patient.pk, "triageLevel": "critical"})
        self.assertEqual(second.status_code, status.HTTP_200_OK)

        board = self.client_for(self.nurse).get("/api/triage/board")
        self.assertEqual(board.status_code, status.HTTP_200_OK)
        self.assertEqual([e["patientId"] for e in board.data["entries"]],
                         [self.patient.pk, entry["patientId"]])
        self.assertEqual(board.data["stats"]["total"], 2)

    def test_invalid_triage_level_code(self):
        resp = self.send(self.nurse, "AdmitPatient", {"patientId": self.patient.pk, "triageLevel": "blue"})
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["error"]["code"], "invalid_triage_level")
        self.assertFalse(TriageEntry.objects.exists())

    def test_illegal_triage_transition_is_409(self):
        self.send(self.nurse, "AdmitPatient", {"patientId": self.patient.pk, "triageLevel": "urgent"})
        entry = TriageEntry.objects.get()
        resp = self.send(self.nurse, "ChangeTriageStatus", {"entryId": entry.pk, "status": "discharged"})
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["error"]["code"], "illegal_triage_transition")
        bogus = self.send(self.nurse, "ChangeTriageStatus", {"entryId": entry.pk, "status": "bogus"})
        self.assertEqual(bogus.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(bogus.data["error"]["code"], "validation_error")
        detail = self.client_for(self.nurse).get(f"/api/triage/entries/{entry.pk}")
        self.assertEqual(detail.data["status"], "waiting")
        self.assertEqual(len(detail.data["transitionHistory"]), 1)

    def test_triage_board_is_staff_only(self):
        resp = self.client_for(self.patient_user).get("/api/triage/board")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    # -- token board -------------------------------------------------------

    def test_token_queue_flow_and_public_board(self):
        for patient, lane in ((self.patient, "regular"), (self.other_patient, "emergency")):
            resp = self.send(self.nurse, "EnqueueToken", {
                "clinicianId": self.clinician.pk, "patientId": patient.pk, "lane": lane,
            })
            self.assertEqual(resp.status_code, status.HTTP_200_OK)
        resp = self.send(self.nurse, "AdvanceQueue", {"clinicianId": self.clinician.pk})
        self.assertEqual(resp.data["data"]["served"]["patientId"], self.other_patient.pk)
        self.assertEqual(resp.data["data"]["served"]["token"], "002")

        board = APIClient().get(f"/api/clinicians/{self.clinician.pk}/queue")
        self.assertEqual(board.status_code, status.HTTP_200_OK)
        self.assertEqual(board.data["currentlyServing"]["token"], "002")
        self.assertEqual(board.data["waitingCount"], 1)

        self.send(self.nurse, "AdvanceQueue", {"clinicianId": self.clinician.pk})
        last = self.send(self.nurse, "AdvanceQueue", {"clinicianId": self.clinician.pk})
        self.assertEqual(last.status_code, status.HTTP_200_OK)
        self.assertIsNone(last.data["data"]["served"])
        self.assertIsNone(last.data["data"]["queue"]["currentlyServing"])
        empty = self.send(self.nurse, "AdvanceQueue", {"clinicianId": self.clinician.pk})
        self.assertEqual(empty.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(empty.data["error"]["code"], "no_waiting_patients")

    # -- beds --------------------------------------------------------------

    def test_bed_scenario_over_http(self):
        resp = self.send(self.admin_user, "RegisterBed", {
            "wardType": "general", "floorNumber": 1, "roomNumber": "101", "bedNumber": "7",
            "dailyCharge": "1000.00",
        })
        self.assertEqual(resp.status_code, status.HTTP_200_OK, resp.data)
        bed_id = resp.data["data"]["bed"]["id"]

        ok = self.send(self.nurse, "AllocateBed", {"bedId": bed_id, "patientId": self.patient.pk})
        self.assertEqual(ok.data["data"]["bed"]["status"], "occupied")
        again = self.send(self.nurse, "AllocateBed", {"bedId": bed_id, "patientId": self.other_patient.pk})
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(again.data["error"]["code"], "bed_not_available")

        out = self.send(self.nurse, "DischargeBed", {"bedId": bed_id})
        self.assertEqual(out.data["data"]["bill"]["daysStayed"], 1)
        self.assertEqual(out.data["data"]["bed"]["status"], "cleaning")
        early = self.send(self.nurse, "AllocateBed", {"bedId": bed_id, "patientId": self.other_patient.pk})
        self.assertEqual(early.status_code, status.HTTP_409_CONFLICT)
        clean = self.send(self.nurse, "MarkBedClean", {"bedId": bed_id})
        self.assertEqual(clean.data["data"]["bed"]["status"], "available")

        dup = self.send(self.admin_user, "RegisterBed", {
            "wardType": "icu", "floorNumber": 1, "roomNumber": "101", "bedNumber": "7",
        })
        self.assertEqual(dup.data["error"]["code"], "duplicate_bed")

        board = self.client_for(self.nurse).get("/api/beds/board", {"ward": "general"})
        self.assertEqual(board.data["stats"]["available"], 1)
        start = (datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(hours=1)).isoformat()
        end = (datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(hours=1)).isoformat()
        occ = self.client_for(self.nurse).get("/api/beds/occupancy", {"start": start, "end": end})
        self.assertEqual(occ.status_code, status.HTTP_200_OK, occ.data)
        self.assertEqual(occ.data["beds"][0]["bedId"], bed_id)
        self.assertEqual(Bed.objects.get(pk=bed_id).events.count(), 4)

        denied = self.client_for(self.nurse).get(f"/api/beds/{bed_id}/history")
        self.assertEqual(denied.status_code, status.HTTP_403_FORBIDDEN)
        trail = self.client_for(self.admin_user).get(f"/api/beds/{bed_id}/history")
        self.assertEqual(
            [e["event"] for e in trail.data], ["register", "allocate", "discharge", "mark_clean"],
        )
        self.assertEqual(trail.data[1]["operator"], "nurse1")
        missing = self.client_for(self.admin_user).get("/api/beds/999999/history")
        self.assertEqual(missing.status_code, status.HTTP_404_NOT_FOUND)

    # -- appointments ------------------------------------------------------

    def test_video_appointment_flow(self):
        booked = self.send(self.patient_user, "BookAppointment", {
            "patientId": self.patient.pk, "clinicianId": self.clinician.pk,
            "date": "2024-03-01", "time": "10:00", "modality": "video",
        })
        self.assertEqual(booked.status_code, status.HTTP_200_OK, booked.data)
        appt_id = booked.data["data"]["appointment"]["id"]

        clash = self.send(self.other_user, "BookAppointment", {
            "patientId": self.other_patient.pk, "clinicianId": self.clinician.pk,
            "date": "2024-03-01", "time": "10:00", "modality": "video",
        })
        self.assertEqual(clash.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(clash.data["error"]["code"], "slot_already_taken")

        locked = self.send(self.patient_user, "JoinVideoSession", {"appointmentId": appt_id})
        self.assertEqual(locked.status_code, status.HTTP_402_PAYMENT_REQUIRED)

        started = self.send(self.patient_user, "InitiatePayment", {"appointmentId": appt_id})
        self.assertEqual(started.data["data"]["payment"]["totalAmount"], "472.00")
        confirmed = self.send(self.gateway, "ConfirmPayment", {
            "appointmentId": appt_id, "outcome": "success", "gatewayPaymentId": "pay_abc",
        })
        self.assertEqual(confirmed.data["data"]["appointment"]["paymentStatus"], "paid")

        joined = self.send(self.patient_user, "JoinVideoSession", {"appointmentId": appt_id})
        self.assertEqual(joined.status_code, status.HTTP_200_OK)
        self.assertTrue(joined.data["data"]["roomId"])

        self.send(self.nurse, "CompleteAppointment", {"appointmentId": appt_id})
        late = self.send(self.patient_user, "JoinVideoSession", {"appointmentId": appt_id})
        self.assertEqual(late.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(late.data["error"]["code"], "session_not_joinable")

    def test_patient_cannot_touch_someone_elses_booking(self):
        resp = self.send(self.patient_user, "BookAppointment", {
            "patientId": self.other_patient.pk, "clinicianId": self.clinician.pk,
            "date": "2024-03-01", "time": "09:30",
        })
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Appointment.objects.exists())

        own = self.send(self.other_user, "BookAppointment", {
            "patientId": self.other_patient.pk, "clinicianId": self.clinician.pk,
            "date": "2024-03-01", "time": "09:30",
        })
        appt_id = own.data["data"]["appointment"]["id"]
        cancel = self.send(self.patient_user, "CancelAppointment", {"appointmentId": appt_id})
        self.assertEqual(cancel.status_code, status.HTTP_403_FORBIDDEN)
        view = self.client_for(self.patient_user).get(f"/api/appointments/{appt_id}")
        self.assertEqual(view.status_code, status.HTTP_403_FORBIDDEN)
        mine = self.client_for(self.other_user).get(f"/api/patients/{self.other_patient.pk}/appointments")
        self.assertEqual([a["id"] for a in mine.data["appointments"]], [appt_id])

    def test_slots_endpoint(self):
        self.send(self.nurse, "BookAppointment", {
            "patientId": self.patient.pk, "clinicianId": self.clinician.pk,
            "date": "2024-03-01", "time": "09:00",
        })
        resp = self.client_for(self.patient_user).get(
            f"/api/clinicians/{self.clinician.pk}/slots", {"date": "2024-03-01"})
        self.assertEqual(resp.data["free"], ["09:30", "10:00", "10:30"])

    def test_unknown_appointment_is_404(self):
        resp = self.client_for(self.nurse).get("/api/appointments/9999")
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data["error"]["code"], "not_found")

    def test_healthz(self):
        resp = self.client.get("/healthz")
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()["ok"])
