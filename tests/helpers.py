"""Request builders shared by the API tests."""


def reading(bike_id="BIKE001", avg_speed=21.5, lat=19.07, lng=72.87, battery=65, **extra):
    body = {"bikeId": bike_id, "data": {"avgSpeed": avg_speed, "location": {"lat": lat, "lng": lng}, "battery": battery}}
    body.update(extra)
    return body


def signup(client, email="amit.sharma@example.in", name="Amit Sharma", password="password123", mobile="9876543210"):
    resp = client.post("/api/signup", json={"name": name, "email": email, "password": password, "mobile": mobile})
    assert resp.status_code == 201, resp.text
    return resp.json()


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}
