from conftest import ADMIN_ID, CLEANER_ID, OTHER_CUSTOMER_ID, booking_payload

from app.auth import Principal, create_access_token, decode_access_token


def create(client, catalog, customer, **overrides):
    response = client.post("/bookings", json=booking_payload(catalog, customer, **overrides))
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_create_booking(client, catalog, customer, recorder):
    body = create(client, catalog, customer)

    assert body["status"] == "pending"
    assert body["currency"] == "NGN"
    assert float(body["total_amount"]) == 2500.0
    assert body["payment_reference"].startswith("BOOK_")
    assert recorder.kinds() == ["booking_created"]


def test_get_booking(client, catalog, customer):
    created = create(client, catalog, customer)

    response = client.get(f"/bookings/{created['booking_id']}")

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == created["booking_id"]
    assert len(body["services"]) == 1
    assert body["extras"][0]["quantity"] == 2
    assert body["payment"]["amount"] == 250000
    assert body["payment"]["reference"] == created["payment_reference"]


def test_other_customer_gets_404(client, catalog, customer, acting_as):
    created = create(client, catalog, customer)
    acting_as["principal"] = Principal(user_id=OTHER_CUSTOMER_ID)

    response = client.get(f"/bookings/{created['booking_id']}")

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_invalid_reference_envelope(client, catalog, customer):
    payload = booking_payload(
        catalog, customer, services=[{"service_item_id": catalog["retired"], "quantity": 1}]
    )

    response = client.post("/bookings", json=payload)

    assert response.status_code == 400
    assert response.json() == {
        "error": "invalid_reference",
        "message": "Service 'Carpet Shampoo' is no longer available",
        "field": "services[0].service_item_id",
    }


def test_zero_quantity_is_422(client, catalog, customer):
    payload = booking_payload(
        catalog, customer, extras=[{"service_extra_id": catalog["fridge"], "quantity": 0}]
    )

    response = client.post("/bookings", json=payload)

    assert response.status_code == 422
    assert response.json()["error"] == "invalid_quantity"
    assert response.json()["field"] == "extras[0].quantity"


def test_malformed_date_names_the_field(client, catalog, customer):
    payload = booking_payload(catalog, customer, service_date="next tuesday")

    response = client.post("/bookings", json=payload)

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "validation_error"
    assert body["field"] == "service_date"


def test_both_address_forms_rejected(client, catalog, customer):
    payload = booking_payload(
        catalog,
        customer,
        new_address={
            "name": "Work",
            "address_line_1": "1 Marina",
            "city": "Lagos",
            "state": "Lagos",
            "postal_code": "101001",
            "country": "Nigeria",
        },
    )

    response = client.post("/bookings", json=payload)

    assert response.status_code == 422
    assert response.json()["field"] == "address"


def test_modify_extras(client, catalog, customer):
    created = create(client, catalog, customer)

    response = client.post(
        f"/bookings/{created['booking_id']}/modify",
        json={"extras": [{"service_extra_id": catalog["oven"], "quantity": 1}]},
    )

    assert response.status_code == 200
    body = response.json()
    assert float(body["total_amount"]) == 2300.0
    assert body["payment_amount"] == 230000


def test_cancel_inside_window_is_409(client, catalog, customer):
    created = create(client, catalog, customer, hours_ahead=23)

    response = client.post(f"/bookings/{created['booking_id']}/cancel")

    assert response.status_code == 409
    assert response.json()["error"] == "cancellation_window_expired"


def test_cancel_outside_window(client, catalog, customer, recorder):
    created = create(client, catalog, customer, hours_ahead=25)

    response = client.post(f"/bookings/{created['booking_id']}/cancel")

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert recorder.kinds() == ["booking_created", "booking_cancelled"]


def test_customer_cannot_post_progress(client, catalog, customer):
    created = create(client, catalog, customer)

    response = client.post(
        f"/bookings/{created['booking_id']}/status", json={"status": "in_progress"}
    )

    assert response.status_code == 403


def test_admin_progress_on_pending_booking_is_409(client, catalog, customer, acting_as):
    created = create(client, catalog, customer)
    acting_as["principal"] = Principal(user_id=ADMIN_ID, role="admin")

    response = client.post(
        f"/bookings/{created['booking_id']}/status", json={"status": "in_progress"}
    )

    assert response.status_code == 409
    assert response.json()["error"] == "invalid_transition"


def test_unknown_progress_status_is_422(client, catalog, customer, acting_as):
    created = create(client, catalog, customer)
    acting_as["principal"] = Principal(user_id=CLEANER_ID, role="cleaner")

    response = client.post(f"/bookings/{created['booking_id']}/status", json={"status": "cancelled"})

    assert response.status_code == 422
    assert response.json()["field"] == "status"


def test_access_token_round_trip():
    token = create_access_token(CLEANER_ID, role="cleaner")
    principal = decode_access_token(token)
    assert principal == Principal(user_id=CLEANER_ID, role="cleaner")
    assert principal.is_cleaner and not principal.is_admin
