from typing import Any, Awaitable, Callable, Dict

import pytest
from httpx import AsyncClient

from campus_events.core.database_manager import DatabaseManager
from campus_events.models.user import User, UserRole
from conftest import at, auth_headers


def _event_json(**overrides: Any) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "title": "Intro to Robotics",
        "start_at": at(10).isoformat(),
        "end_at": at(12).isoformat(),
        "location": "Lab 2",
        "capacity": 2,
        "category": "Workshop",
        "tags": ["robots", "robots", "intro"],
    }
    data.update(overrides)
    return data


async def _create(client: AsyncClient, organizer: User, **overrides: Any) -> Dict[str, Any]:
    response = await client.post(
        "/api/v1/events/", json=_event_json(**overrides), headers=auth_headers(organizer)
    )
    assert response.status_code == 201, response.text
    body: Dict[str, Any] = response.json()
    return body


async def test_create_and_read_event(client: AsyncClient, organizer: User) -> None:
    created = await _create(client, organizer)
    assert created["tags"] == ["robots", "intro"]
    assert created["remaining_seats"] == 2
    assert created["can_edit"] is True

    response = await client.get(f"/api/v1/events/{created['id']}")
    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "Intro to Robotics"
    assert body["can_edit"] is False
    assert response.headers["X-Request-ID"]


async def test_create_requires_organizer(client: AsyncClient, student: User) -> None:
    response = await client.post(
        "/api/v1/events/", json=_event_json(), headers=auth_headers(student)
    )
    assert response.status_code == 403

    response = await client.post("/api/v1/events/", json=_event_json())
    assert response.status_code == 401


async def test_bad_token_is_rejected(client: AsyncClient) -> None:
    response = await client.post(
        "/api/v1/events/",
        json=_event_json(),
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert response.status_code == 401


async def test_room_clash_maps_to_409(client: AsyncClient, organizer: User) -> None:
    await _create(client, organizer)
    response = await client.post(
        "/api/v1/events/",
        json=_event_json(start_at=at(11).isoformat(), end_at=at(13).isoformat()),
        headers=auth_headers(organizer),
    )
    assert response.status_code == 409
    assert response.json() == {"detail": "Room already booked in that time slot."}


async def test_invalid_interval_maps_to_422(client: AsyncClient, organizer: User) -> None:
    response = await client.post(
        "/api/v1/events/",
        json=_event_json(end_at=at(9).isoformat()),
        headers=auth_headers(organizer),
    )
    assert response.status_code == 422
    assert response.json()["detail"] == "End time must be after start time."


async def test_register_flow(
    client: AsyncClient,
    organizer: User,
    make_user: Callable[..., Awaitable[User]],
) -> None:
    created = await _create(client, organizer, capacity=1)
    first = await make_user(UserRole.STUDENT)
    second = await make_user(UserRole.STUDENT)
    url = f"/api/v1/events/{created['id']}/register"

    response = await client.post(url, headers=auth_headers(first))
    assert response.status_code == 200
    assert response.json() == {"ok": True, "registered": 1}

    response = await client.post(url, headers=auth_headers(second))
    assert response.status_code == 409
    assert response.json()["detail"] == "No seats available"

    detail = await client.get(
        f"/api/v1/events/{created['id']}", headers=auth_headers(first)
    )
    assert detail.json()["is_registered"] is True
    assert detail.json()["remaining_seats"] == 0

    response = await client.delete(url, headers=auth_headers(first))
    assert response.status_code == 200
    assert response.json() == {"ok": True, "registered": 0}


async def test_organizer_register_maps_to_403(client: AsyncClient, organizer: User) -> None:
    created = await _create(client, organizer)
    response = await client.post(
        f"/api/v1/events/{created['id']}/register", headers=auth_headers(organizer)
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "Organizers cannot register for events."


async def test_missing_event_maps_to_404(client: AsyncClient, student: User) -> None:
    response = await client.get("/api/v1/events/999")
    assert response.status_code == 404
    assert response.json() == {"detail": "Event not found"}

    response = await client.post(
        "/api/v1/events/999/register", headers=auth_headers(student)
    )
    assert response.status_code == 404


async def test_update_and_delete(client: AsyncClient, organizer: User, student: User) -> None:
    created = await _create(client, organizer)
    url = f"/api/v1/events/{created['id']}"

    response = await client.put(
        url, json=_event_json(title="Advanced Robotics", capacity=5), headers=auth_headers(organizer)
    )
    assert response.status_code == 200
    assert response.json()["title"] == "Advanced Robotics"

    response = await client.delete(url, headers=auth_headers(student))
    assert response.status_code == 403

    response = await client.delete(url, headers=auth_headers(organizer))
    assert response.status_code == 200
    assert (await client.get(url)).status_code == 404


async def test_list_events_query_params(client: AsyncClient, organizer: User) -> None:
    await _create(client, organizer, title="Chess", category="Social")
    await _create(client, organizer, title="Robots", location="Lab 3")

    response = await client.get("/api/v1/events/", params={"category": "social"})
    assert response.status_code == 200
    assert [e["title"] for e in response.json()] == ["Chess"]

    response = await client.get("/api/v1/events/", params={"limit": 0})
    assert response.status_code == 422


async def test_conflicts_endpoint(client: AsyncClient, organizer: User, student: User) -> None:
    first = await _create(client, organizer, location="Room A")
    second = await _create(
        client,
        organizer,
        location="Room B",
        start_at=at(11).isoformat(),
        end_at=at(13).isoformat(),
    )
    await client.post(
        f"/api/v1/events/{first['id']}/register", headers=auth_headers(student)
    )

    response = await client.get(
        f"/api/v1/events/{second['id']}/conflicts", headers=auth_headers(student)
    )
    assert response.status_code == 200
    assert [e["id"] for e in response.json()] == [first["id"]]


async def test_dashboards(client: AsyncClient, organizer: User, student: User) -> None:
    created = await _create(client, organizer)
    await client.post(
        f"/api/v1/events/{created['id']}/register", headers=auth_headers(student)
    )

    response = await client.get(
        f"/api/v1/dashboard/student/{student.id}", headers=auth_headers(student)
    )
    assert response.status_code == 200
    assert response.json()["total_registrations"] == 1

    response = await client.get(
        f"/api/v1/dashboard/student/{student.id}", headers=auth_headers(organizer)
    )
    assert response.status_code == 403
    assert response.json() == {"detail": "You can only act on your own account"}

    response = await client.get("/api/v1/dashboard/me", headers=auth_headers(organizer))
    assert response.status_code == 200
    assert response.json()["total_registrations"] == 1
    assert response.json()["organizer_id"] == organizer.id

    response = await client.get(
        f"/api/v1/dashboard/user/{organizer.id}/role", headers=auth_headers(student)
    )
    assert response.json()["role"] == "organizer"

    response = await client.delete(
        f"/api/v1/dashboard/student/{student.id}/events/{created['id']}",
        headers=auth_headers(student),
    )
    assert response.status_code == 200
    assert response.json()["registered"] == 0


async def test_health_and_metrics(
    client: AsyncClient, manager: DatabaseManager, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr("campus_events.core.database_manager.db_manager", manager)

    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "http_requests_total" in response.text


async def test_student_conflicts_route(
    client: AsyncClient, organizer: User, make_user: Callable[..., Awaitable[User]]
) -> None:
    student = await make_user(UserRole.STUDENT)
    other = await make_user(UserRole.STUDENT)
    first = await _create(client, organizer, location="Room A")
    second = await _create(
        client,
        organizer,
        location="Room B",
        start_at=at(11).isoformat(),
        end_at=at(13).isoformat(),
    )
    await client.post(
        f"/api/v1/events/{first['id']}/register", headers=auth_headers(student)
    )
    url = f"/api/v1/dashboard/student/{student.id}/conflicts/{second['id']}"

    response = await client.get(url, headers=auth_headers(student))
    assert response.status_code == 200
    assert [e["id"] for e in response.json()] == [first["id"]]

    response = await client.get(url, headers=auth_headers(other))
    assert response.status_code == 403

    response = await client.get(
        f"/api/v1/dashboard/student/{student.id}/conflicts/999",
        headers=auth_headers(student),
    )
    assert response.status_code == 404


async def test_withdraw_for_another_student_is_forbidden(
    client: AsyncClient, organizer: User, make_user: Callable[..., Awaitable[User]]
) -> None:
    student = await make_user(UserRole.STUDENT)
    other = await make_user(UserRole.STUDENT)
    created = await _create(client, organizer)
    await client.post(
        f"/api/v1/events/{created['id']}/register", headers=auth_headers(student)
    )

    response = await client.delete(
        f"/api/v1/dashboard/student/{student.id}/events/{created['id']}",
        headers=auth_headers(other),
    )
    assert response.status_code == 403
    assert response.json() == {"detail": "You can only act on your own account"}

    detail = await client.get(f"/api/v1/events/{created['id']}")
    assert detail.json()["registered"] == 1


async def test_rejections_do_not_break_later_requests(
    client: AsyncClient, organizer: User, student: User
) -> None:
    created = await _create(client, organizer, capacity=0)
    url = f"/api/v1/events/{created['id']}/register"

    for _ in range(2):
        response = await client.post(url, headers=auth_headers(student))
        assert response.status_code == 409
        assert response.json() == {"detail": "No seats available"}

    response = await client.delete(url, headers=auth_headers(student))
    assert response.status_code == 404
    assert response.json() == {"detail": "Not registered"}
