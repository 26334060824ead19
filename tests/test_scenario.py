"""
End-to-end flows across identity, relationships, records, messaging and audit.
"""
from fastapi import Depends
from fastapi.testclient import TestClient

from conftest import API, audit_entries, register
from kneecare.api.deps import get_current_user


def test_relationship_grants_and_ending_revokes_access(client, app, admin):
    _, admin_headers = admin
    doctor_user, doctor_headers = register(client, "d@example.com", role="doctor")
    patient_user, patient_headers = register(client, "p@example.com")
    client.post(f"{API}/activity/", json={"steps": 4200}, headers=patient_headers)
    activity_url = f"{API}/activity/user/{patient_user['id']}"

    established = client.post(
        f"{API}/relationships/", json={"patient_id": patient_user["id"]}, headers=doctor_headers
    )
    assert established.status_code == 201
    relationship_id = established.json()["id"]

    allowed = client.get(activity_url, headers=doctor_headers)
    assert allowed.status_code == 200
    assert allowed.json()["total"] == 1

    ended = client.delete(f"{API}/relationships/{relationship_id}", headers=admin_headers)
    assert ended.status_code == 200

    denied = client.get(activity_url, headers=doctor_headers)
    assert denied.status_code == 403

    lifecycle = [
        entry.action for entry in audit_entries(app, entity="doctorPatientRelations")
    ]
    assert lifecycle == ["relationship_created", "relationship_ended"]
    # Read attempts, allowed or denied, leave no trace
    assert audit_entries(app, status="failure") == []


def test_patient_messages_only_related_doctors(client, doctor, stranger_doctor, patient, relationship):
    doctor_user, doctor_headers = doctor
    stranger_user, _ = stranger_doctor
    patient_user, patient_headers = patient

    refused = client.post(
        f"{API}/messages/", json={"receiver_id": stranger_user["id"], "content": "hello?"}, headers=patient_headers
    )
    assert refused.status_code == 403

    sent = client.post(
        f"{API}/messages/", json={"receiver_id": doctor_user["id"], "content": "Knee hurts"}, headers=patient_headers
    )
    assert sent.status_code == 201
    message = sent.json()
    assert message["conversation_id"] == f"conv_{min(doctor_user['id'], patient_user['id'])}_{max(doctor_user['id'], patient_user['id'])}"

    assert client.get(f"{API}/messages/unread-count", headers=doctor_headers).json() == {"unread_count": 1}
    assert client.put(f"{API}/messages/{message['id']}/read", headers=patient_headers).status_code == 403
    read = client.put(f"{API}/messages/{message['id']}/read", headers=doctor_headers)
    assert read.json()["is_read"] is True
    assert client.get(f"{API}/messages/unread-count", headers=doctor_headers).json() == {"unread_count": 0}

    reply = client.post(
        f"{API}/messages/",
        json={"receiver_id": patient_user["id"], "content": "Let's review", "reply_to_id": message["id"]},
        headers=doctor_headers,
    )
    assert reply.status_code == 201

    conversations = client.get(f"{API}/messages/conversations", headers=patient_headers).json()
    assert len(conversations) == 1
    assert conversations[0]["other_user_id"] == doctor_user["id"]
    assert conversations[0]["last_message"] == "Let's review"
    assert conversations[0]["unread_count"] == 1

    thread = client.get(f"{API}/messages/conversation/{doctor_user['id']}", headers=patient_headers).json()
    assert [m["content"] for m in thread["items"]] == ["Knee hurts", "Let's review"]


def test_messages_are_private(client, doctor, patient, other_patient, relationship):
    doctor_user, _ = doctor
    _, patient_headers = patient
    _, other_headers = other_patient
    message = client.post(
        f"{API}/messages/", json={"receiver_id": doctor_user["id"], "content": "private"}, headers=patient_headers
    ).json()
    assert client.get(f"{API}/messages/{message['id']}", headers=other_headers).status_code == 404


def test_notifications_flow(client, admin, patient, other_patient):
    _, admin_headers = admin
    patient_user, patient_headers = patient
    other_user, other_headers = other_patient

    broadcast = client.post(f"{API}/notifications/broadcast", json={
        "user_ids": [patient_user["id"], other_user["id"]],
        "type": "system", "title": "Maintenance", "message": "Tonight at 22:00",
    }, headers=admin_headers)
    assert broadcast.status_code == 201
    assert broadcast.json()["sent_count"] == 2

    assert client.post(f"{API}/notifications/broadcast", json={
        "user_ids": [other_user["id"]], "type": "system", "title": "x", "message": "y",
    }, headers=patient_headers).status_code == 403

    mine = client.get(f"{API}/notifications/", headers=patient_headers).json()
    assert mine["total"] == 1
    notification_id = mine["items"][0]["id"]

    assert client.get(f"{API}/notifications/{notification_id}", headers=other_headers).status_code == 404
    assert client.put(f"{API}/notifications/{notification_id}/read", headers=patient_headers).json()["is_read"] is True
    assert client.get(f"{API}/notifications/unread-count", headers=patient_headers).json() == {"unread_count": 0}

    assert client.put(f"{API}/notifications/read-all", headers=other_headers).status_code == 200
    assert client.get(f"{API}/notifications/unread-count", headers=other_headers).json() == {"unread_count": 0}


def test_kl_grade_reference_data(client, admin, patient):
    _, admin_headers = admin
    _, patient_headers = patient

    assert client.post(f"{API}/kl-grades/initialize", headers=patient_headers).status_code == 403
    seeded = client.post(f"{API}/kl-grades/initialize", headers=admin_headers)
    assert seeded.status_code == 201
    assert [g["grade"] for g in seeded.json()] == [0, 1, 2, 3, 4]

    grade = client.get(f"{API}/kl-grades/2").json()
    assert grade["severity"] == "Moderate"
    assert client.get(f"{API}/kl-grades/5").status_code == 400
    assert isinstance(client.get(f"{API}/kl-grades/4/recommendations").json(), list)


def test_unexpected_error_is_audited_once(app, settings):
    @app.get(f"{API}/boom")
    async def boom(current_user=Depends(get_current_user)):
        raise RuntimeError("kaboom")

    with TestClient(app, raise_server_exceptions=False) as client:
        _, headers = register(client, "crash@example.com")
        response = client.get(f"{API}/boom", headers=headers)

        assert response.status_code == 500
        assert response.json()["error"] == "internal_error"
        assert "kaboom" not in response.json()["message"]

        # The in-memory database goes away with the lifespan
        failures = audit_entries(app, status="failure")
        assert len(failures) == 1
        assert failures[0].details["status_code"] == 500


def test_health_endpoints(client):
    assert client.get(f"{API}/health/").json()["status"] == "healthy"
    ready = client.get(f"{API}/health/ready")
    assert ready.status_code == 200
    assert client.get(f"{API}/health/live").status_code == 200
