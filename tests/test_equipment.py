from pathlib import Path

from common.config import get_settings

from .conftest import EQUIPMENT_FORM

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _stored(public_path: str) -> Path:
    return Path(get_settings().upload_dir) / Path(public_path).name


def test_owner_creates_listing_with_images(equipment_client, owner):
    response = equipment_client.post(
        "/api/equipment",
        data=EQUIPMENT_FORM,
        files=[
            ("images", ("front.png", PNG_BYTES, "image/png")),
            ("images", ("side.jpg", PNG_BYTES, "image/jpeg")),
        ],
        headers=owner["headers"],
    )
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    assert data["status"] == "available"
    assert data["owner_id"] == owner["user"]["id"]
    assert data["price_per_day"] == 450
    assert len(data["images"]) == 2
    for image in data["images"]:
        assert image.startswith("/uploads/equipment-")
        assert _stored(image).exists()

    served = equipment_client.get(data["images"][0])
    assert served.status_code == 200
    assert served.content == PNG_BYTES


def test_customer_cannot_create_listing(equipment_client, customer):
    response = equipment_client.post("/api/equipment", data=EQUIPMENT_FORM, headers=customer["headers"])
    assert response.status_code == 403
    assert response.json()["error_kind"] == "forbidden"


def test_create_validates_fields_and_images(equipment_client, owner):
    bad_category = {**EQUIPMENT_FORM, "category": "spaceship"}
    response = equipment_client.post("/api/equipment", data=bad_category, headers=owner["headers"])
    assert response.status_code == 400

    negative_price = {**EQUIPMENT_FORM, "price_per_day": "-5"}
    assert equipment_client.post("/api/equipment", data=negative_price, headers=owner["headers"]).status_code == 400

    not_an_image = equipment_client.post(
        "/api/equipment",
        data=EQUIPMENT_FORM,
        files=[("images", ("notes.txt", b"hello", "text/plain"))],
        headers=owner["headers"],
    )
    assert not_an_image.status_code == 400
    assert "image" in not_an_image.json()["message"].lower()

    too_many = [("images", (f"{i}.png", PNG_BYTES, "image/png")) for i in range(6)]
    response = equipment_client.post("/api/equipment", data=EQUIPMENT_FORM, files=too_many, headers=owner["headers"])
    assert response.status_code == 400

    before = set(Path(get_settings().upload_dir).glob("equipment-*"))
    oversized = b"\x00" * (get_settings().max_upload_size_bytes + 1)
    response = equipment_client.post(
        "/api/equipment",
        data=EQUIPMENT_FORM,
        files=[("images", ("big.png", oversized, "image/png"))],
        headers=owner["headers"],
    )
    assert response.status_code == 400
    assert set(Path(get_settings().upload_dir).glob("equipment-*")) == before


def test_list_filters_and_detail(equipment_client, owner, other_owner, create_equipment):
    excavator = create_equipment(owner["headers"])
    create_equipment(
        other_owner["headers"],
        title="Diesel generator 100kVA",
        category="power_generator",
        description="Silent generator",
        city="Benghazi",
        phone_number="0921234567",
    )

    everything = equipment_client.get("/api/equipment").json()
    assert everything["count"] == 2
    assert everything["data"][0]["title"] == "Diesel generator 100kVA"

    by_city = equipment_client.get("/api/equipment", params={"city": "Benghazi"}).json()
    assert [item["category"] for item in by_city["data"]] == ["power_generator"]

    by_category = equipment_client.get("/api/equipment", params={"category": "excavator"}).json()
    assert by_category["count"] == 1

    by_search = equipment_client.get("/api/equipment", params={"search": "SILENT"}).json()
    assert by_search["count"] == 1

    busy = equipment_client.get("/api/equipment", params={"status": "busy"}).json()
    assert busy["count"] == 0

    detail = equipment_client.get(f"/api/equipment/{excavator['id']}").json()["data"]
    assert detail["owner"]["email"] == "owner.one@example.com"

    mine = equipment_client.get(f"/api/equipment/owner/{owner['user']['id']}").json()
    assert [item["id"] for item in mine["data"]] == [excavator["id"]]

    missing = equipment_client.get("/api/equipment/9999")
    assert missing.status_code == 404
    assert missing.json()["error_kind"] == "not_found"


def test_update_is_partial_and_appends_images(equipment_client, owner, create_equipment):
    created = equipment_client.post(
        "/api/equipment",
        data=EQUIPMENT_FORM,
        files=[("images", ("first.png", PNG_BYTES, "image/png"))],
        headers=owner["headers"],
    ).json()["data"]

    response = equipment_client.put(
        f"/api/equipment/{created['id']}",
        data={"price_per_day": "500", "title": ""},
        files=[("images", ("second.webp", PNG_BYTES, "image/webp"))],
        headers=owner["headers"],
    )
    assert response.status_code == 200, response.text
    updated = response.json()["data"]
    assert updated["price_per_day"] == 500
    assert updated["title"] == EQUIPMENT_FORM["title"]
    assert updated["images"][0] == created["images"][0]
    assert len(updated["images"]) == 2


def test_update_rejects_status_and_foreign_listing(equipment_client, owner, other_owner, create_equipment):
    listing = create_equipment(owner["headers"])

    status_edit = equipment_client.put(
        f"/api/equipment/{listing['id']}", data={"status": "busy"}, headers=owner["headers"]
    )
    assert status_edit.status_code == 400
    assert equipment_client.get(f"/api/equipment/{listing['id']}").json()["data"]["status"] == "available"

    foreign = equipment_client.put(
        f"/api/equipment/{listing['id']}", data={"title": "Mine now"}, headers=other_owner["headers"]
    )
    assert foreign.status_code == 403


def test_owner_may_list_as_busy_initially(create_equipment, owner):
    listing = create_equipment(owner["headers"], status="busy")
    assert listing["status"] == "busy"


def test_busy_listing_can_be_reopened(equipment_client, owner, create_equipment):
    listing = create_equipment(owner["headers"], status="busy")

    response = equipment_client.put(
        f"/api/equipment/{listing['id']}", data={"status": "available", "city": "Misrata"}, headers=owner["headers"]
    )
    assert response.status_code == 200, response.text
    data = response.json()["data"]
    assert data["status"] == "available"
    assert data["city"] == "Misrata"

    invalid = equipment_client.put(
        f"/api/equipment/{listing['id']}", data={"status": "broken"}, headers=owner["headers"]
    )
    assert invalid.status_code == 400


def test_delete_removes_listing_and_images(equipment_client, owner, other_owner):
    created = equipment_client.post(
        "/api/equipment",
        data=EQUIPMENT_FORM,
        files=[("images", ("front.png", PNG_BYTES, "image/png"))],
        headers=owner["headers"],
    ).json()["data"]
    stored = _stored(created["images"][0])
    assert stored.exists()

    assert equipment_client.delete(f"/api/equipment/{created['id']}", headers=other_owner["headers"]).status_code == 403

    response = equipment_client.delete(f"/api/equipment/{created['id']}", headers=owner["headers"])
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert not stored.exists()
    assert equipment_client.get(f"/api/equipment/{created['id']}").status_code == 404
    assert equipment_client.get("/api/equipment").json()["count"] == 0
    assert equipment_client.get(f"/api/equipment/owner/{owner['user']['id']}").json()["count"] == 0
    assert equipment_client.delete(f"/api/equipment/{created['id']}", headers=owner["headers"]).status_code == 404
