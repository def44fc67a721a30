"""Integration tests for API endpoints."""

import pytest


async def create_tour(client, **overrides):
    payload = {"title": "T", "activities": ["a"]}
    payload.update(overrides)
    response = await client.post("/tours", json=payload)
    assert response.status_code == 200
    return response.json()


@pytest.mark.asyncio
async def test_create_tour_endpoint(test_client, sample_tour_data):
    """Test the tour creation endpoint."""
    response = await test_client.post("/tours", json=sample_tour_data)

    assert response.status_code == 200
    data = response.json()
    assert data["title"] == sample_tour_data["title"]
    assert data["activities"] == sample_tour_data["activities"]
    assert data["launchDate"] == "2026-06-01T09:00:00Z"
    assert data["version"] == 0
    assert data["stops"] == []
    assert "id" in data


@pytest.mark.asyncio
async def test_create_tour_ignores_client_stops(test_client):
    """Test that a new tour never starts with stops, even if some are sent."""
    data = await create_tour(test_client, stops=[{"id": "x"}])

    assert data["stops"] == []
    assert data["version"] == 0
    assert data["launchDate"]


@pytest.mark.asyncio
async def test_create_tour_validation_error(test_client):
    """Test that an invalid body is reported as a 400 problem with violations."""
    response = await test_client.post("/tours", json={"activities": "not-a-list"})

    assert response.status_code == 400
    assert response.headers["content-type"].startswith("application/problem+json")
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    paths = {violation["path"] for violation in data["violations"]}
    assert "body.title" in paths
    assert "body.activities" in paths


@pytest.mark.asyncio
async def test_create_tour_empty_title(test_client):
    """Test that an empty title is rejected."""
    response = await test_client.post("/tours", json={"title": ""})

    assert response.status_code == 400
    assert response.json()["status"] == 400


@pytest.mark.asyncio
async def test_list_tours_projection_and_order(test_client):
    """Test that listing returns id, title and launch date in creation order."""
    first = await create_tour(test_client, title="First")
    second = await create_tour(test_client, title="Second")

    response = await test_client.get("/tours")

    assert response.status_code == 200
    data = response.json()
    assert [tour["id"] for tour in data] == [first["id"], second["id"]]
    for tour in data:
        assert set(tour) == {"id", "title", "launchDate"}


@pytest.mark.asyncio
async def test_list_tours_empty(test_client):
    """Test listing with no tours."""
    response = await test_client.get("/tours")

    assert response.status_code == 200
    assert response.json() == []


@pytest.mark.asyncio
async def test_get_tour_matches_created_document(test_client):
    """Test that a fetched tour reproduces the created one."""
    created = await create_tour(test_client)

    response = await test_client.get(f"/tours/{created['id']}")

    assert response.status_code == 200
    assert response.json() == created


@pytest.mark.asyncio
async def test_get_tour_not_found(test_client):
    """Test fetching an unknown tour."""
    response = await test_client.get("/tours/6f1c1e5a-4a8e-4f5e-9d0e-2b7f3f5a9c11")

    assert response.status_code == 404
    data = response.json()
    assert data["status"] == 404
    assert data["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_malformed_tour_id_is_not_found(test_client):
    """Test that an ID that cannot name a tour yields 404 on every route."""
    assert (await test_client.get("/tours/not-a-uuid")).status_code == 404
    assert (await test_client.put("/tours/not-a-uuid", json={"title": "x"})).status_code == 404
    assert (await test_client.delete("/tours/not-a-uuid")).status_code == 404
    assert (await test_client.post("/tours/not-a-uuid/stops", json={"postalCode": "97214"})).status_code == 404


@pytest.mark.asyncio
async def test_replace_tour(test_client):
    """Test that replace updates title and activities and bumps the version."""
    created = await create_tour(test_client)

    response = await test_client.put(
        f"/tours/{created['id']}",
        json={
            "title": "Renamed",
            "activities": ["b"],
            "launchDate": "1999-01-01T00:00:00Z",
            "stops": [{"id": "injected"}],
        }
    )

    assert response.status_code == 200
    data = response.json()
    assert data["title"] == "Renamed"
    assert data["activities"] == ["b"]
    assert data["version"] == 1
    assert data["launchDate"] == created["launchDate"]
    assert data["stops"] == []
    assert data["id"] == created["id"]


@pytest.mark.asyncio
async def test_replace_tour_stale_version(test_client):
    """Test that a replace based on an outdated version is rejected."""
    created = await create_tour(test_client)
    tour_url = f"/tours/{created['id']}"

    response = await test_client.put(tour_url, json={"title": "v1", "version": 0})
    assert response.status_code == 200
    assert response.json()["version"] == 1

    response = await test_client.put(tour_url, json={"title": "stale", "version": 0})
    assert response.status_code == 409
    data = response.json()
    assert data["code"] == "VERSION_CONFLICT"
    assert data["retryable"] is False

    current = (await test_client.get(tour_url)).json()
    assert current["title"] == "v1"
    assert current["version"] == 1


@pytest.mark.asyncio
async def test_replace_tour_not_found(test_client):
    """Test replacing an unknown tour."""
    response = await test_client.put(
        "/tours/6f1c1e5a-4a8e-4f5e-9d0e-2b7f3f5a9c11",
        json={"title": "x"}
    )

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_tour(test_client):
    """Test that a deleted tour is gone."""
    created = await create_tour(test_client)
    tour_url = f"/tours/{created['id']}"

    response = await test_client.delete(tour_url)
    assert response.status_code == 200
    assert response.json() == {"removed": True}

    assert (await test_client.get(tour_url)).status_code == 404
    assert (await test_client.delete(tour_url)).status_code == 404
    assert (await test_client.get("/tours")).json() == []


@pytest.mark.asyncio
async def test_tour_with_stop_scenario(test_client):
    """Test create, add stop, remove stop end to end."""
    created = await create_tour(test_client, stops=[])
    assert created["title"] == "T"
    assert created["activities"] == ["a"]
    assert created["version"] == 0
    assert created["stops"] == []
    stops_url = f"/tours/{created['id']}/stops"

    response = await test_client.post(stops_url, json={"zip": "97214"})
    assert response.status_code == 200
    stop = response.json()
    assert stop["location"]["region"] == "Oregon"
    assert stop["weather"]["temperature"] is not None

    tour = (await test_client.get(f"/tours/{created['id']}")).json()
    assert tour["version"] == 1
    assert tour["stops"] == [stop]
    assert tour["stops"][0]["location"]["postalCode"] == "97214"

    response = await test_client.delete(f"{stops_url}/{stop['id']}")
    assert response.status_code == 200
    assert response.json() == {"removed": True}

    tour = (await test_client.get(f"/tours/{created['id']}")).json()
    assert tour["stops"] == []
    assert tour["version"] == 2


@pytest.mark.asyncio
async def test_add_stops_preserve_order(test_client):
    """Test that stops are kept in insertion order."""
    created = await create_tour(test_client)
    stops_url = f"/tours/{created['id']}/stops"

    for postal_code in ["97214", "10001", "97214"]:
        response = await test_client.post(stops_url, json={"postalCode": postal_code})
        assert response.status_code == 200

    tour = (await test_client.get(f"/tours/{created['id']}")).json()
    assert [s["location"]["postalCode"] for s in tour["stops"]] == ["97214", "10001", "97214"]
    assert len({s["id"] for s in tour["stops"]}) == 3
    assert tour["version"] == 3


@pytest.mark.asyncio
async def test_add_stop_to_missing_tour(test_client, fake_geocoder):
    """Test that no lookup is made for a tour that does not exist."""
    response = await test_client.post(
        "/tours/6f1c1e5a-4a8e-4f5e-9d0e-2b7f3f5a9c11/stops",
        json={"postalCode": "97214"}
    )

    assert response.status_code == 404
    assert fake_geocoder.calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "postal_code, status_code, code",
    [
        ("abc", 400, "INVALID_IDENTIFIER"),
        ("00000", 422, "LOCATION_NOT_FOUND"),
    ],
)
async def test_add_stop_enrichment_errors(test_client, postal_code, status_code, code):
    """Test that enrichment failures map to problem responses and change nothing."""
    created = await create_tour(test_client)

    response = await test_client.post(
        f"/tours/{created['id']}/stops",
        json={"postalCode": postal_code}
    )

    assert response.status_code == status_code
    assert response.json()["code"] == code
    tour = (await test_client.get(f"/tours/{created['id']}")).json()
    assert tour["stops"] == []
    assert tour["version"] == 0


@pytest.mark.asyncio
async def test_add_stop_geocoder_unavailable(test_client, fake_geocoder):
    """Test that a geocoder outage is a retryable 503."""
    created = await create_tour(test_client)
    fake_geocoder.unavailable = True

    response = await test_client.post(
        f"/tours/{created['id']}/stops",
        json={"postalCode": "97214"}
    )

    assert response.status_code == 503
    data = response.json()
    assert data["code"] == "UPSTREAM_UNAVAILABLE"
    assert data["retryable"] is True


@pytest.mark.asyncio
async def test_add_stop_weather_failure_leaves_tour_unchanged(test_client, fake_weather):
    """Test that a weather failure after geocoding does not add a stop."""
    created = await create_tour(test_client)
    stops_url = f"/tours/{created['id']}/stops"
    await test_client.post(stops_url, json={"postalCode": "10001"})
    before = (await test_client.get(f"/tours/{created['id']}")).json()

    fake_weather.unavailable = True
    response = await test_client.post(stops_url, json={"postalCode": "97214"})

    assert response.status_code == 502
    assert response.json()["code"] == "WEATHER_UNAVAILABLE"
    after = (await test_client.get(f"/tours/{created['id']}")).json()
    assert after == before


@pytest.mark.asyncio
async def test_add_stop_missing_postal_code(test_client):
    """Test that an add-stop body without a postal code is a validation error."""
    created = await create_tour(test_client)

    response = await test_client.post(f"/tours/{created['id']}/stops", json={})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_update_stop_only_changes_attendance(test_client):
    """Test that a stop update cannot overwrite enrichment data."""
    created = await create_tour(test_client)
    stops_url = f"/tours/{created['id']}/stops"
    stop = (await test_client.post(stops_url, json={"postalCode": "97214"})).json()

    tampered = {
        **stop,
        "id": "forged",
        "location": {**stop["location"], "region": "Nowhere"},
        "weather": {**stop["weather"], "temperature": -40},
        "attendance": 25,
    }
    response = await test_client.put(f"{stops_url}/{stop['id']}", json=tampered)

    assert response.status_code == 200
    updated = response.json()
    assert updated["attendance"] == 25
    assert updated["id"] == stop["id"]
    assert updated["location"] == stop["location"]
    assert updated["weather"] == stop["weather"]

    tour = (await test_client.get(f"/tours/{created['id']}")).json()
    assert tour["stops"] == [updated]
    assert tour["version"] == 2


@pytest.mark.asyncio
async def test_update_stop_negative_attendance(test_client):
    """Test that attendance cannot be negative."""
    created = await create_tour(test_client)
    stops_url = f"/tours/{created['id']}/stops"
    stop = (await test_client.post(stops_url, json={"postalCode": "97214"})).json()

    response = await test_client.put(f"{stops_url}/{stop['id']}", json={"attendance": -1})

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_unknown_stop(test_client):
    """Test updating and removing a stop the tour does not have."""
    created = await create_tour(test_client)
    stop_url = f"/tours/{created['id']}/stops/missing"

    assert (await test_client.put(stop_url, json={"attendance": 1})).status_code == 404
    assert (await test_client.delete(stop_url)).status_code == 404

    tour = (await test_client.get(f"/tours/{created['id']}")).json()
    assert tour["version"] == 0


@pytest.mark.asyncio
async def test_add_stop_enriches_outside_transaction(test_client, test_session, enrichment_service, monkeypatch):
    """Test that no database transaction is held open during provider lookups."""
    created = await create_tour(test_client)
    enrich = enrichment_service.enrich
    in_transaction = []

    async def recording_enrich(postal_code):
        in_transaction.append(test_session.in_transaction())
        return await enrich(postal_code)

    monkeypatch.setattr(enrichment_service, "enrich", recording_enrich)

    response = await test_client.post(
        f"/tours/{created['id']}/stops",
        json={"postalCode": "97214"}
    )

    assert response.status_code == 200
    assert in_transaction == [False]
