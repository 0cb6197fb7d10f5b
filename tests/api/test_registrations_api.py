from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from tests.utils.auth import get_user_authentication_headers
from tests.utils.event import create_question, create_random_event, create_ticket_type


def _participant(email, ticket_type_id=None, **extra):
    data = {"email": email, "firstName": "Test", "lastName": "User", **extra}
    if ticket_type_id:
        data["ticketTypeId"] = ticket_type_id
    return data


def test_free_registration_is_confirmed(client: TestClient, db: Session) -> None:
    event = create_random_event(db, is_free=True)
    data = {
        "eventId": event.id,
        "tickets": [],
        "participants": [_participant("one@example.com"), _participant("two@example.com")],
    }

    response = client.post("/api/v1/registrations", json=data)

    assert response.status_code == 201
    content = response.json()
    assert content["status"] == "confirmed"
    assert content["registrationId"].startswith("reg_")
    assert "guestToken" not in content


def test_guest_paid_registration_returns_token(client: TestClient, db: Session) -> None:
    event = create_random_event(db)
    ticket_type = create_ticket_type(db, event)
    data = {
        "eventId": event.id,
        "tickets": [{"ticketTypeId": ticket_type.id, "quantity": 1}],
        "participants": [_participant("guest@example.com", ticket_type.id)],
    }

    response = client.post("/api/v1/registrations", json=data)

    assert response.status_code == 201
    content = response.json()
    assert content["status"] == "pending"
    assert content["guestToken"]


def test_last_ticket_conflict(client: TestClient, db: Session) -> None:
    event = create_random_event(db)
    ticket_type = create_ticket_type(db, event, quantity_total=1)

    def _body(email):
        return {
            "eventId": event.id,
            "tickets": [{"ticketTypeId": ticket_type.id, "quantity": 1}],
            "participants": [_participant(email, ticket_type.id)],
        }

    first = client.post("/api/v1/registrations", json=_body("first@example.com"))
    second = client.post("/api/v1/registrations", json=_body("second@example.com"))

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["field"] == "tickets"


def test_schema_error_is_400_with_field(client: TestClient, db: Session) -> None:
    event = create_random_event(db, is_free=True)
    data = {"eventId": event.id, "participants": [_participant("not-an-email")]}

    response = client.post("/api/v1/registrations", json=data)

    assert response.status_code == 400
    assert response.json()["field"] == "participants.0.email"


def test_unknown_event_is_404(client: TestClient, db: Session) -> None:
    data = {"eventId": "evt_missing", "participants": [_participant("a@example.com")]}

    response = client.post("/api/v1/registrations", json=data)

    assert response.status_code == 404
    assert response.json() == {"detail": "Event not found", "field": "eventId"}


def test_invalid_bearer_is_rejected(client: TestClient, db: Session) -> None:
    event = create_random_event(db, is_free=True)
    data = {"eventId": event.id, "participants": [_participant("a@example.com")]}

    response = client.post(
        "/api/v1/registrations", json=data, headers={"Authorization": "Bearer garbage"}
    )

    assert response.status_code == 401
    assert response.json() == {"detail": "Could not validate credentials", "field": None}
    assert response.headers["www-authenticate"] == "Bearer"


def test_read_registration_detail(client: TestClient, db: Session) -> None:
    event = create_random_event(db)
    ticket_type = create_ticket_type(db, event, price=4000)
    question = create_question(db, event, text="Company")
    headers = get_user_authentication_headers(user_id="user_reader")
    data = {
        "eventId": event.id,
        "tickets": [{"ticketTypeId": ticket_type.id, "quantity": 1}],
        "participants": [
            _participant(
                "reader@example.com",
                ticket_type.id,
                responses=[{"questionId": question.id, "answerText": "Acme"}],
            )
        ],
    }
    created = client.post("/api/v1/registrations", json=data, headers=headers).json()

    response = client.get(f"/api/v1/registrations/{created['registrationId']}", headers=headers)

    assert response.status_code == 200
    content = response.json()
    assert content["userId"] == "user_reader"
    assert content["purchase"]["totalPrice"] == 4000
    assert content["purchase"]["items"][0]["ticketTypeName"] == "General Admission"
    assert content["attendees"][0]["responses"][0]["responseText"] == "Acme"
    assert "paymentTokenHash" not in content["purchase"]


def test_read_requires_authentication(client: TestClient, db: Session) -> None:
    response = client.get("/api/v1/registrations/reg_any")

    assert response.status_code == 401


def test_read_by_stranger_is_forbidden(client: TestClient, db: Session) -> None:
    event = create_random_event(db, is_free=True)
    owner = get_user_authentication_headers(user_id="user_owner")
    created = client.post(
        "/api/v1/registrations",
        json={"eventId": event.id, "participants": [_participant("o@example.com")]},
        headers=owner,
    ).json()

    response = client.get(
        f"/api/v1/registrations/{created['registrationId']}",
        headers=get_user_authentication_headers(user_id="user_stranger"),
    )

    assert response.status_code == 403


def test_cancel_registration(client: TestClient, db: Session) -> None:
    event = create_random_event(db)
    ticket_type = create_ticket_type(db, event, quantity_total=1)
    headers = get_user_authentication_headers(user_id="user_cancel")
    created = client.post(
        "/api/v1/registrations",
        json={
            "eventId": event.id,
            "tickets": [{"ticketTypeId": ticket_type.id, "quantity": 1}],
            "participants": [_participant("c@example.com", ticket_type.id)],
        },
        headers=headers,
    ).json()

    response = client.post(
        f"/api/v1/registrations/{created['registrationId']}/cancel", headers=headers
    )

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    db.refresh(ticket_type)
    assert ticket_type.quantity_sold == 0


def test_list_own_registrations(client: TestClient, db: Session) -> None:
    event = create_random_event(db, is_free=True)
    mine = get_user_authentication_headers(user_id="user_lister")
    client.post(
        "/api/v1/registrations",
        json={"eventId": event.id, "participants": [_participant("l@example.com")]},
        headers=mine,
    )
    client.post(
        "/api/v1/registrations",
        json={"eventId": event.id, "participants": [_participant("x@example.com")]},
        headers=get_user_authentication_headers(user_id="user_other"),
    )

    response = client.get("/api/v1/registrations", headers=mine)

    assert response.status_code == 200
    content = response.json()
    assert [r["userId"] for r in content["data"]] == ["user_lister"]
    assert content["data"][0]["participant"]["email"] == "l@example.com"
    assert content["pagination"] == {"totalItems": 1, "totalPages": 1, "currentPage": 1}


def test_list_someone_elses_registrations_is_forbidden(client: TestClient, db: Session) -> None:
    response = client.get(
        "/api/v1/registrations",
        params={"userId": "user_other"},
        headers=get_user_authentication_headers(user_id="user_lister"),
    )

    assert response.status_code == 403


def test_organizer_cancels_through_status(client: TestClient, db: Session) -> None:
    event = create_random_event(db, owner_id="organizer_api")
    ticket_type = create_ticket_type(db, event, quantity_total=1)
    created = client.post(
        "/api/v1/registrations",
        json={
            "eventId": event.id,
            "tickets": [{"ticketTypeId": ticket_type.id, "quantity": 1}],
            "participants": [_participant("s@example.com", ticket_type.id)],
        },
        headers=get_user_authentication_headers(user_id="user_status"),
    ).json()
    organizer = get_user_authentication_headers(user_id="organizer_api")
    url = f"/api/v1/registrations/{created['registrationId']}/status"

    response = client.patch(url, json={"status": "cancelled"}, headers=organizer)
    reopened = client.patch(url, json={"status": "confirmed"}, headers=organizer)

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert reopened.status_code == 400
    assert reopened.json()["field"] == "status"
    db.refresh(ticket_type)
    assert ticket_type.quantity_sold == 0


def test_attendee_cannot_change_status(client: TestClient, db: Session) -> None:
    event = create_random_event(db, is_free=True)
    headers = get_user_authentication_headers(user_id="user_self")
    created = client.post(
        "/api/v1/registrations",
        json={"eventId": event.id, "participants": [_participant("self@example.com")]},
        headers=headers,
    ).json()

    response = client.patch(
        f"/api/v1/registrations/{created['registrationId']}/status",
        json={"status": "pending"},
        headers=headers,
    )

    assert response.status_code == 403
