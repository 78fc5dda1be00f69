"""HTTP tests for the appointment endpoints."""
from __future__ import annotations

from conftest import future_date
from massagebook.extensions import db
from massagebook.models import Appointment


def test_endpoints_require_authentication(client, make_user, make_shop, make_appointment):
    appointment = make_appointment(make_user(), make_shop())
    path = f"/appointments/{appointment.appointment_id}"

    for response in (
        client.get("/appointments"),
        client.post("/appointments", json={"shop": 1, "date": future_date()}),
        client.get(path),
        client.put(path, json={"status": "cancelled"}),
        client.delete(path),
    ):
        assert response.status_code == 401
        assert response.get_json()["error"] == "unauthorized"
        assert response.get_json()["success"] is False


def test_invalid_token_is_unauthenticated(client):
    response = client.get("/appointments", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_create_appointment_201(client, make_user, make_shop, auth_headers):
    user = make_user()
    shop = make_shop()

    response = client.post(
        "/appointments",
        json={"shop": shop.shop_id, "date": future_date()},
        headers=auth_headers(user),
    )
    data = response.get_json()

    assert response.status_code == 201
    assert data["success"] is True
    assert data["data"]["status"] == "booked"
    assert data["data"]["user_id"] == user.user_id
    assert data["data"]["shop"]["name"] == shop.name


def test_create_via_shop_path(client, make_user, make_shop, auth_headers):
    shop = make_shop()

    response = client.post(
        f"/shops/{shop.shop_id}/appointments",
        json={"date": future_date()},
        headers=auth_headers(make_user()),
    )

    assert response.status_code == 201
    assert response.get_json()["data"]["shop_id"] == shop.shop_id


def test_create_error_codes(client, make_user, auth_headers):
    headers = auth_headers(make_user())

    missing = client.post("/appointments", json={"shop": 999, "date": future_date()}, headers=headers)
    assert missing.status_code == 404
    assert missing.get_json()["error"] == "not_found"

    malformed = client.post("/appointments", json={"shop": "abc", "date": future_date()}, headers=headers)
    assert malformed.status_code == 400
    assert malformed.get_json()["error"] == "invalid_reference"

    no_shop = client.post("/appointments", json={"date": future_date()}, headers=headers)
    assert no_shop.status_code == 400
    assert no_shop.get_json()["error"] == "invalid_payload"


def test_fourth_booking_is_rejected_and_cancel_does_not_free_slot(
    client, make_user, make_shop, auth_headers
):
    user = make_user()
    shop = make_shop()
    headers = auth_headers(user)

    created = []
    for day in range(1, 4):
        response = client.post("/appointments", json={"shop": shop.shop_id, "date": future_date(day)}, headers=headers)
        assert response.status_code == 201
        created.append(response.get_json()["data"]["id"])

    response = client.post("/appointments", json={"shop": shop.shop_id, "date": future_date(4)}, headers=headers)
    assert response.status_code == 400
    assert response.get_json()["error"] == "cap_exceeded"
    assert str(user.user_id) in response.get_json()["message"]

    cancel = client.put(f"/appointments/{created[0]}", json={"status": "cancelled"}, headers=headers)
    assert cancel.status_code == 200

    response = client.post("/appointments", json={"shop": shop.shop_id, "date": future_date(4)}, headers=headers)
    assert response.status_code == 400
    assert response.get_json()["error"] == "cap_exceeded"


def test_admin_can_book_past_cap(client, make_user, make_shop, make_appointment, auth_headers):
    admin = make_user(role="admin")
    shop = make_shop()
    for _ in range(3):
        make_appointment(admin, shop)

    response = client.post("/appointments", json={"shop": shop.shop_id, "date": future_date()}, headers=auth_headers(admin))

    assert response.status_code == 201


def test_list_appointments_by_role(client, make_user, make_shop, make_appointment, auth_headers):
    user = make_user()
    other = make_user()
    staff = make_user(role="staff")
    spa = make_shop()
    other_spa = make_shop()
    mine = make_appointment(user, spa)
    make_appointment(other, spa)
    make_appointment(other, other_spa)

    response = client.get("/appointments", headers=auth_headers(user))
    data = response.get_json()
    assert response.status_code == 200
    assert data["count"] == 1
    assert data["data"][0]["id"] == mine.appointment_id

    everything = client.get("/appointments", headers=auth_headers(staff)).get_json()
    assert everything["count"] == 3

    filtered = client.get(f"/appointments?shop={spa.shop_id}", headers=auth_headers(staff)).get_json()
    assert filtered["count"] == 2

    nested = client.get(f"/shops/{other_spa.shop_id}/appointments", headers=auth_headers(staff)).get_json()
    assert nested["count"] == 1


def test_get_appointment_visibility(client, make_user, make_shop, make_appointment, auth_headers):
    owner = make_user()
    appointment = make_appointment(owner, make_shop())
    path = f"/appointments/{appointment.appointment_id}"

    assert client.get(path, headers=auth_headers(owner)).status_code == 200
    assert client.get(path, headers=auth_headers(make_user(role="staff"))).status_code == 200
    assert client.get(path, headers=auth_headers(make_user())).status_code == 403
    assert client.get("/appointments/999", headers=auth_headers(owner)).status_code == 404


def test_status_update_keeps_date_and_shop(client, make_user, make_shop, make_appointment, auth_headers):
    user = make_user()
    shop = make_shop()
    appointment = make_appointment(user, shop)
    before = appointment.to_dict()

    response = client.put(
        f"/appointments/{appointment.appointment_id}",
        json={"status": "cancelled"},
        headers=auth_headers(user),
    )
    data = response.get_json()["data"]

    assert response.status_code == 200
    assert data["status"] == "cancelled"
    assert data["date"] == before["date"]
    assert data["shop_id"] == before["shop_id"]


def test_update_and_delete_forbidden_for_other_users(client, make_user, make_shop, make_appointment, auth_headers):
    owner = make_user()
    appointment = make_appointment(owner, make_shop())
    path = f"/appointments/{appointment.appointment_id}"
    stranger = auth_headers(make_user())

    update = client.put(path, json={"status": "cancelled"}, headers=stranger)
    delete = client.delete(path, headers=stranger)

    assert update.status_code == 403
    assert update.get_json()["error"] == "forbidden"
    assert delete.status_code == 403
    db.session.expire_all()
    assert db.session.get(Appointment, appointment.appointment_id).status == "booked"


def test_admin_can_delete_any_appointment(client, make_user, make_shop, make_appointment, auth_headers):
    appointment = make_appointment(make_user(), make_shop())
    path = f"/appointments/{appointment.appointment_id}"
    headers = auth_headers(make_user(role="admin"))

    response = client.delete(path, headers=headers)

    assert response.status_code == 200
    assert response.get_json() == {"success": True, "data": {}}
    assert client.delete(path, headers=headers).status_code == 404


def test_malformed_appointment_id_is_invalid_reference(client, make_user, auth_headers):
    headers = auth_headers(make_user())

    for response in (
        client.get("/appointments/abc", headers=headers),
        client.put("/appointments/abc", json={"status": "cancelled"}, headers=headers),
        client.delete("/appointments/0", headers=headers),
    ):
        assert response.status_code == 400
        assert response.is_json
        assert response.get_json()["success"] is False
        assert response.get_json()["error"] == "invalid_reference"


def test_create_via_malformed_shop_path(client, make_user, auth_headers):
    response = client.post("/shops/abc/appointments", json={"date": future_date()}, headers=auth_headers(make_user()))

    assert response.status_code == 400
    assert response.get_json()["error"] == "invalid_reference"
