"""
Owned health records through the API: lifestyle logs, medications,
consultations and recommendations.
"""
from datetime import datetime, timedelta

from conftest import API, audit_entries


def _future(days=3):
    return (datetime.utcnow() + timedelta(days=days)).replace(microsecond=0).isoformat()


# ── Activity ─────────────────────────────────────────────────────────

def test_patient_logs_activity_and_sees_goal_progress(client, app, patient):
    patient_user, headers = patient
    response = client.post(f"{API}/activity/", json={"steps": 5000, "target_steps": 10000}, headers=headers)

    assert response.status_code == 201
    body = response.json()
    assert body["user_id"] == patient_user["id"]
    assert body["step_goal_achievement"] == 50.0
    assert len(audit_entries(app, action="activity_logged")) == 1

    listing = client.get(f"{API}/activity/", headers=headers).json()
    assert listing["total"] == 1


def test_doctor_reads_patient_activity_through_relationship(client, doctor, patient, relationship):
    patient_user, patient_headers = patient
    _, doctor_headers = doctor
    created = client.post(f"{API}/activity/", json={"steps": 1200}, headers=patient_headers).json()

    listing = client.get(f"{API}/activity/user/{patient_user['id']}", headers=doctor_headers)
    assert listing.status_code == 200
    assert [item["id"] for item in listing.json()["items"]] == [created["id"]]

    stats = client.get(
        f"{API}/activity/stats", params={"user_id": patient_user["id"]}, headers=doctor_headers
    ).json()
    assert stats["total_steps"] == 1200


def test_unrelated_doctor_is_forbidden_and_records_are_hidden(client, stranger_doctor, patient):
    patient_user, patient_headers = patient
    _, stranger_headers = stranger_doctor
    created = client.post(f"{API}/activity/", json={"steps": 10}, headers=patient_headers).json()

    assert client.get(f"{API}/activity/user/{patient_user['id']}", headers=stranger_headers).status_code == 403
    assert client.get(f"{API}/activity/{created['id']}", headers=stranger_headers).status_code == 404
    assert client.delete(f"{API}/activity/{created['id']}", headers=stranger_headers).status_code == 404


def test_revoked_permission_blocks_lifestyle_reads(client, doctor, patient, relationship):
    patient_user, _ = patient
    _, doctor_headers = doctor
    client.put(
        f"{API}/relationships/{relationship['id']}",
        json={"permissions": {"view_activity_data": False}},
        headers=doctor_headers,
    )

    for resource in ("activity", "diet", "weight"):
        response = client.get(f"{API}/{resource}/user/{patient_user['id']}", headers=doctor_headers)
        assert response.status_code == 403, resource


def test_ended_relationship_revokes_access(client, doctor, patient, relationship):
    patient_user, _ = patient
    _, doctor_headers = doctor
    client.delete(f"{API}/relationships/{relationship['id']}", headers=doctor_headers)

    response = client.get(f"{API}/activity/user/{patient_user['id']}", headers=doctor_headers)
    assert response.status_code == 403


def test_activity_update_ignores_owner_change(client, patient, other_patient):
    _, headers = patient
    other_user, _ = other_patient
    created = client.post(f"{API}/activity/", json={"steps": 10}, headers=headers).json()

    response = client.put(
        f"{API}/activity/{created['id']}", json={"steps": 20, "user_id": other_user["id"]}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["steps"] == 20
    assert response.json()["user_id"] == created["user_id"]


# ── Diet ─────────────────────────────────────────────────────────────

def test_diet_totals_are_derived_from_meals(client, patient):
    _, headers = patient
    meals = [{"type": "breakfast", "foods": [
        {"name": "oats", "calories": 150, "nutrients": {"protein": 5, "fiber": 4}},
        {"name": "berries", "calories": 50, "nutrients": {"carbs": 12}},
    ]}]
    created = client.post(f"{API}/diet/", json={"meals": meals}, headers=headers)

    assert created.status_code == 201
    body = created.json()
    assert body["total_calories"] == 200
    assert body["total_nutrients"]["protein"] == 5
    assert body["total_nutrients"]["carbs"] == 12

    added = client.post(
        f"{API}/diet/{body['id']}/meals",
        json={"type": "lunch", "foods": [{"name": "salad", "calories": 120}]},
        headers=headers,
    )
    assert added.status_code == 200
    assert added.json()["total_calories"] == 320
    assert len(added.json()["meals"]) == 2


def test_diet_totals_cannot_be_set_directly(client, patient):
    _, headers = patient
    created = client.post(f"{API}/diet/", json={"meals": []}, headers=headers).json()
    response = client.put(f"{API}/diet/{created['id']}", json={"total_calories": 9999}, headers=headers)
    assert response.json()["total_calories"] == 0


# ── Weight ───────────────────────────────────────────────────────────

def test_bmi_is_derived_from_height(client, patient):
    _, headers = patient
    response = client.post(f"{API}/weight/", json={"weight_kg": 72.25}, headers=headers)

    assert response.status_code == 201
    assert response.json()["bmi"] == 25.0
    assert response.json()["bmi_category"] == "Overweight"


def test_bmi_is_absent_without_height(client, other_patient):
    _, headers = other_patient
    response = client.post(f"{API}/weight/", json={"weight_kg": 70}, headers=headers)
    assert response.json()["bmi"] is None


def test_latest_weight(client, patient):
    _, headers = patient
    assert client.get(f"{API}/weight/latest", headers=headers).status_code == 404

    client.post(f"{API}/weight/", json={"weight_kg": 80, "measured_at": "2026-01-01T08:00:00"}, headers=headers)
    client.post(f"{API}/weight/", json={"weight_kg": 78, "measured_at": "2026-02-01T08:00:00"}, headers=headers)

    latest = client.get(f"{API}/weight/latest", headers=headers)
    assert latest.json()["weight_kg"] == 78

    stats = client.get(f"{API}/weight/stats", headers=headers).json()
    assert stats["count"] == 2
    assert stats["change"] == -2


def test_weight_out_of_range_is_rejected(client, patient):
    _, headers = patient
    response = client.post(f"{API}/weight/", json={"weight_kg": 5}, headers=headers)
    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "weight_kg"


# ── Medications ──────────────────────────────────────────────────────

def _reminder(client, headers, **extra):
    payload = {
        "medication_name": "Ibuprofen",
        "dosage": "200mg",
        "frequency": "twice_daily",
        "time_slots": ["08:00", "20:00"],
        "start_date": "2026-01-01T00:00:00",
    }
    payload.update(extra)
    return client.post(f"{API}/medications/", json=payload, headers=headers)


def test_doctor_prescribes_and_patient_logs_doses(client, app, doctor, patient, relationship):
    doctor_user, doctor_headers = doctor
    patient_user, patient_headers = patient

    created = _reminder(client, doctor_headers, user_id=patient_user["id"])
    assert created.status_code == 201
    reminder = created.json()
    assert reminder["prescribed_by"] == doctor_user["id"]
    assert reminder["user_id"] == patient_user["id"]

    for taken in (True, True, False):
        dose = client.post(
            f"{API}/medications/{reminder['id']}/doses", json={"taken": taken}, headers=patient_headers
        )
        assert dose.status_code == 201

    fetched = client.get(f"{API}/medications/{reminder['id']}", headers=patient_headers).json()
    assert fetched["adherence_percentage"] == 67
    assert len(fetched["doses"]) == 3
    assert len(audit_entries(app, action="medication_dose_logged")) == 3


def test_prescribing_needs_permission(client, doctor, patient, relationship):
    patient_user, _ = patient
    _, doctor_headers = doctor
    client.put(
        f"{API}/relationships/{relationship['id']}",
        json={"permissions": {"prescribe_medications": False}},
        headers=doctor_headers,
    )
    assert _reminder(client, doctor_headers, user_id=patient_user["id"]).status_code == 403


def test_invalid_time_slot_is_rejected(client, patient):
    _, headers = patient
    response = _reminder(client, headers, time_slots=["25:00"])
    assert response.status_code == 400


def test_medication_soft_delete(client, patient):
    _, headers = patient
    reminder = _reminder(client, headers).json()

    assert client.delete(f"{API}/medications/{reminder['id']}", headers=headers).status_code == 200
    assert client.get(f"{API}/medications/", headers=headers).json()["total"] == 0
    listing = client.get(f"{API}/medications/", params={"include_inactive": True}, headers=headers).json()
    assert listing["total"] == 1
    assert listing["items"][0]["is_active"] is False


def test_today_lists_running_schedules(client, patient):
    _, headers = patient
    _reminder(client, headers)
    _reminder(client, headers, medication_name="Future", start_date=_future(30))

    today = client.get(f"{API}/medications/today", headers=headers).json()
    assert [r["medication_name"] for r in today] == ["Ibuprofen"]


# ── Consultations ────────────────────────────────────────────────────

def test_consultation_lifecycle(client, app, doctor, patient, relationship):
    _, doctor_headers = doctor
    patient_user, patient_headers = patient

    created = client.post(f"{API}/consultations/", json={
        "patient_id": patient_user["id"], "consultation_type": "virtual", "scheduled_at": _future(),
    }, headers=doctor_headers)
    assert created.status_code == 201
    consultation = created.json()
    assert consultation["status"] == "scheduled"

    upcoming = client.get(f"{API}/consultations/upcoming", headers=patient_headers).json()
    assert [c["id"] for c in upcoming] == [consultation["id"]]

    refused = client.post(f"{API}/consultations/{consultation['id']}/complete", json={}, headers=patient_headers)
    assert refused.status_code == 403

    completed = client.post(
        f"{API}/consultations/{consultation['id']}/complete",
        json={"notes": "Stable", "reviewed_predictions": []},
        headers=doctor_headers,
    )
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"

    again = client.post(f"{API}/consultations/{consultation['id']}/cancel", json={}, headers=doctor_headers)
    assert again.status_code == 400


def test_doctor_without_relationship_cannot_schedule(client, stranger_doctor, patient):
    _, stranger_headers = stranger_doctor
    patient_user, _ = patient
    response = client.post(f"{API}/consultations/", json={
        "patient_id": patient_user["id"], "consultation_type": "in_person", "scheduled_at": _future(),
    }, headers=stranger_headers)
    assert response.status_code == 403


def test_patient_books_and_cancels(client, doctor, patient):
    doctor_user, _ = doctor
    _, patient_headers = patient
    created = client.post(f"{API}/consultations/", json={
        "doctor_id": doctor_user["id"], "consultation_type": "review", "scheduled_at": _future(),
    }, headers=patient_headers).json()

    cancelled = client.post(
        f"{API}/consultations/{created['id']}/cancel", json={"reason": "travel"}, headers=patient_headers
    )
    assert cancelled.json()["status"] == "cancelled"
    assert cancelled.json()["cancellation_reason"] == "travel"


def test_consultation_with_non_doctor_is_invalid(client, patient, other_patient):
    other_user, _ = other_patient
    _, patient_headers = patient
    response = client.post(f"{API}/consultations/", json={
        "doctor_id": other_user["id"], "consultation_type": "virtual", "scheduled_at": _future(),
    }, headers=patient_headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid doctor ID"


# ── Recommendations ──────────────────────────────────────────────────

def test_recommendations_are_written_by_clinicians(client, doctor, patient, relationship):
    _, doctor_headers = doctor
    patient_user, patient_headers = patient
    payload = {
        "user_id": patient_user["id"],
        "kl_grade": 2,
        "recommendations": {"activity": {"daily_steps": 6000}, "reminders": []},
    }

    assert client.post(f"{API}/recommendations/", json=payload, headers=patient_headers).status_code == 403

    created = client.post(f"{API}/recommendations/", json=payload, headers=doctor_headers)
    assert created.status_code == 201

    active = client.get(f"{API}/recommendations/user/{patient_user['id']}/active", headers=patient_headers)
    assert active.status_code == 200
    assert active.json()["recommendations"]["activity"] == {"daily_steps": 6000}


def test_no_active_recommendation(client, patient):
    patient_user, headers = patient
    response = client.get(f"{API}/recommendations/user/{patient_user['id']}/active", headers=headers)
    assert response.status_code == 404
    assert response.json()["message"] == "No active recommendation found"
