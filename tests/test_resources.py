from booking_core.models import ResourceType


def seed(make_resource):
    make_resource("Board Room", capacity=12, location="Floor 1", features=["tv", "whiteboard"])
    make_resource("Focus Room", capacity=4, location="Floor 2", features=["tv"])
    make_resource("Desk 2-14", ResourceType.DESK, capacity=None, location="Floor 2", features=["monitor"])


def test_health(resources_client):
    assert resources_client.get("/health").json() == {"status": "ok", "service": "resources"}


def test_list_and_filter_resources(resources_client, make_resource):
    seed(make_resource)

    everything = resources_client.get("/resources")
    assert everything.status_code == 200
    assert [item["name"] for item in everything.json()] == ["Board Room", "Focus Room", "Desk 2-14"]

    desks = resources_client.get("/resources", params={"type": "DESK"})
    assert [item["name"] for item in desks.json()] == ["Desk 2-14"]

    large = resources_client.get("/resources", params={"min_capacity": 6})
    assert [item["name"] for item in large.json()] == ["Board Room"]

    second_floor = resources_client.get("/resources", params={"location": "floor 2"})
    assert {item["name"] for item in second_floor.json()} == {"Focus Room", "Desk 2-14"}

    equipped = resources_client.get("/resources", params=[("features", "tv"), ("features", "whiteboard")])
    assert [item["name"] for item in equipped.json()] == ["Board Room"]


def test_listing_is_cached(resources_client, make_resource):
    make_resource("Board Room")
    assert len(resources_client.get("/resources").json()) == 1

    make_resource("Focus Room")

    assert len(resources_client.get("/resources").json()) == 1
    assert len(resources_client.get("/resources", params={"location": "Floor"}).json()) == 2


def test_get_resource(resources_client, make_resource):
    room = make_resource("Board Room", capacity=12)

    response = resources_client.get(f"/resources/{room.id}")
    assert response.status_code == 200
    assert response.json()["capacity"] == 12
    assert response.json()["status"] == "AVAILABLE"

    missing = resources_client.get("/resources/999")
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Resource not found"
