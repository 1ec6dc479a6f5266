"""Todo API tests — scoping, filters, ordering, ownership, notifications.

Learn: These tests verify the authorization rules, which are the most
important business logic in the system:
1. Listing only ever returns tasks the caller created or is assigned to
2. Filters AND together on top of that scope
3. Only the creator may update or delete (assignees get a 404)
4. Creating a task with assignees emails each of them in the background

Pattern: Build up test data using the API (register users → create tasks).
"""

from datetime import datetime, timedelta, timezone

import pytest


def _iso(dt: datetime) -> str:
    return dt.isoformat()


def _parse(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


async def _create(client, user, **fields):
    fields.setdefault("title", "Untitled")
    r = await client.post("/api/todos", json=fields, headers=user["headers"])
    assert r.status_code == 201, r.text
    return r.json()


async def _list(client, user, **params):
    r = await client.get("/api/todos", params=params, headers=user["headers"])
    assert r.status_code == 200, r.text
    return r.json()


def _titles(tasks) -> list[str]:
    return [t["title"] for t in tasks]


# ═══════════════════════════════════════════════════════════
# Shared fixtures
# ═══════════════════════════════════════════════════════════


@pytest.fixture
async def alice(make_user):
    return await make_user("Alice")


@pytest.fixture
async def bob(make_user):
    return await make_user("Bob")


@pytest.fixture
async def carol(make_user):
    return await make_user("Carol")


# ═══════════════════════════════════════════════════════════
# Create
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_create_task(client, alice):
    """POST /api/todos creates a task owned by the caller with defaults."""
    task = await _create(client, alice, title="Write docs")

    assert task["title"] == "Write docs"
    assert task["description"] == ""
    assert task["priority"] == "medium"
    assert task["completed"] is False
    assert task["dueDate"] is None
    assert task["assignedTo"] == []
    assert task["creator"]["id"] == alice["id"]
    assert task["creator"]["name"] == "Alice"
    assert "id" in task and "createdAt" in task


@pytest.mark.asyncio
async def test_create_ignores_creator_in_payload(client, alice, bob):
    """The creator is always the caller, whatever the body says."""
    task = await _create(
        client, alice, title="Mine", creator=bob["id"], creatorId=bob["id"]
    )
    assert task["creator"]["id"] == alice["id"]


@pytest.mark.asyncio
@pytest.mark.parametrize("title", ["", "   "])
async def test_create_blank_title_rejected(client, alice, title):
    r = await client.post("/api/todos", json={"title": title}, headers=alice["headers"])
    assert r.status_code == 400
    assert r.json()["message"] == "Title is required"


@pytest.mark.asyncio
async def test_create_invalid_priority_rejected(client, alice):
    r = await client.post(
        "/api/todos", json={"title": "X", "priority": "urgent"}, headers=alice["headers"]
    )
    assert r.status_code == 400
    assert "message" in r.json()


@pytest.mark.asyncio
async def test_create_with_unknown_assignee_rejected(client, alice):
    r = await client.post(
        "/api/todos",
        json={"title": "X", "assignedTo": ["00000000-0000-0000-0000-000000000099"]},
        headers=alice["headers"],
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_create_accepts_snake_case_fields(client, alice, bob):
    due = datetime(2030, 1, 2, 9, 30, tzinfo=timezone.utc)
    task = await _create(
        client, alice, title="Snake", due_date=_iso(due), assigned_to=[bob["id"]]
    )
    assert _parse(task["dueDate"]) == due
    assert [u["id"] for u in task["assignedTo"]] == [bob["id"]]


@pytest.mark.asyncio
async def test_create_then_list_round_trip(client, alice, bob):
    """Fields read back through the listing match what was created."""
    due = datetime(2031, 5, 17, 12, 0, tzinfo=timezone.utc)
    created = await _create(
        client,
        alice,
        title="Round trip",
        description="Every field survives",
        priority="low",
        completed=True,
        dueDate=_iso(due),
        assignedTo=[bob["id"]],
    )

    listed = [t for t in await _list(client, alice) if t["id"] == created["id"]]
    assert len(listed) == 1
    fetched = listed[0]
    for key in ("title", "description", "priority", "completed", "creator", "assignedTo"):
        assert fetched[key] == created[key]
    assert _parse(fetched["dueDate"]) == due
    assert _parse(fetched["createdAt"]) == _parse(created["createdAt"])


# ═══════════════════════════════════════════════════════════
# Scope
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_listing_scope(client, alice, bob, carol):
    """A user sees exactly the tasks they created or are assigned to."""
    await _create(client, alice, title="Alice private")
    await _create(client, alice, title="Alice to Bob", assignedTo=[bob["id"]])
    await _create(client, bob, title="Bob private")
    await _create(client, carol, title="Carol to Alice and Bob", assignedTo=[alice["id"], bob["id"]])
    await _create(client, carol, title="Carol private")

    assert sorted(_titles(await _list(client, alice))) == [
        "Alice private",
        "Alice to Bob",
        "Carol to Alice and Bob",
    ]
    assert sorted(_titles(await _list(client, bob))) == [
        "Alice to Bob",
        "Bob private",
        "Carol to Alice and Bob",
    ]
    assert sorted(_titles(await _list(client, carol))) == [
        "Carol private",
        "Carol to Alice and Bob",
    ]


@pytest.mark.asyncio
async def test_listing_expands_users_without_secrets(client, alice, bob):
    await _create(client, alice, title="Shared", assignedTo=[bob["id"]])
    task = (await _list(client, bob))[0]

    assert set(task["creator"]) == {"id", "name", "email", "avatar"}
    assert set(task["assignedTo"][0]) == {"id", "name", "email", "avatar"}
    assert task["assignedTo"][0]["email"] == bob["email"]


# ═══════════════════════════════════════════════════════════
# Filters
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_search_is_case_insensitive_over_title_and_description(client, alice):
    await _create(client, alice, title="Ship release")
    await _create(client, alice, title="Write docs")
    await _create(client, alice, title="Misc", description="remember to SHIP it")

    assert sorted(_titles(await _list(client, alice, search="ship"))) == ["Misc", "Ship release"]
    assert _titles(await _list(client, alice, search="DOCS")) == ["Write docs"]


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(client, alice):
    await _create(client, alice, title="100% done")
    await _create(client, alice, title="1000 lines")

    assert _titles(await _list(client, alice, search="0%")) == ["100% done"]


@pytest.mark.asyncio
async def test_status_filter(client, alice):
    await _create(client, alice, title="Done", completed=True)
    await _create(client, alice, title="Open")

    assert _titles(await _list(client, alice, status="completed")) == ["Done"]
    assert _titles(await _list(client, alice, status="incomplete")) == ["Open"]
    assert len(await _list(client, alice, status="all")) == 2


@pytest.mark.asyncio
async def test_priority_filter(client, alice):
    await _create(client, alice, title="Hi", priority="high")
    await _create(client, alice, title="Lo", priority="low")

    assert _titles(await _list(client, alice, priority="high")) == ["Hi"]


@pytest.mark.asyncio
async def test_filters_combine(client, alice, bob):
    await _create(client, alice, title="High done", priority="high", completed=True)
    await _create(client, alice, title="High open", priority="high")
    await _create(client, alice, title="Low done", priority="low", completed=True)
    await _create(client, bob, title="Bob high done", priority="high", completed=True)

    tasks = await _list(client, alice, status="completed", priority="high")
    assert _titles(tasks) == ["High done"]
    assert all(t["completed"] and t["priority"] == "high" for t in tasks)


@pytest.mark.asyncio
async def test_overdue_filter(client, alice):
    now = datetime.now(timezone.utc)
    await _create(client, alice, title="Late", dueDate=_iso(now - timedelta(hours=1)))
    await _create(client, alice, title="Upcoming", dueDate=_iso(now + timedelta(hours=1)))
    await _create(client, alice, title="Undated")

    assert _titles(await _list(client, alice, dueDate="overdue")) == ["Late"]


# ═══════════════════════════════════════════════════════════
# Ordering
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_order_due_date_ascending_undated_last(client, alice):
    base = datetime(2030, 6, 1, tzinfo=timezone.utc)
    await _create(client, alice, title="Undated old")
    await _create(client, alice, title="Later", dueDate=_iso(base + timedelta(days=3)))
    await _create(client, alice, title="Sooner", dueDate=_iso(base))
    await _create(client, alice, title="Undated new")

    assert _titles(await _list(client, alice)) == [
        "Sooner",
        "Later",
        "Undated new",
        "Undated old",
    ]


@pytest.mark.asyncio
async def test_same_due_date_newest_first(client, alice):
    due = _iso(datetime(2030, 6, 1, tzinfo=timezone.utc))
    await _create(client, alice, title="First", dueDate=due)
    await _create(client, alice, title="Second", dueDate=due)

    assert _titles(await _list(client, alice)) == ["Second", "First"]


# ═══════════════════════════════════════════════════════════
# Update
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_update_merges_only_supplied_fields(client, alice):
    task = await _create(
        client, alice, title="Original", description="keep me", priority="high"
    )

    r = await client.put(
        f"/api/todos/{task['id']}", json={"completed": True}, headers=alice["headers"]
    )
    assert r.status_code == 200
    updated = r.json()
    assert updated["completed"] is True
    assert updated["title"] == "Original"
    assert updated["description"] == "keep me"
    assert updated["priority"] == "high"


@pytest.mark.asyncio
async def test_update_cannot_change_creator_or_id(client, alice, bob):
    task = await _create(client, alice, title="Owned")

    r = await client.put(
        f"/api/todos/{task['id']}",
        json={"title": "Renamed", "creator": bob["id"], "id": "00000000-0000-0000-0000-000000000001"},
        headers=alice["headers"],
    )
    assert r.status_code == 200
    assert r.json()["id"] == task["id"]
    assert r.json()["creator"]["id"] == alice["id"]
    assert r.json()["title"] == "Renamed"


@pytest.mark.asyncio
async def test_update_reassigns_and_clears_due_date(client, alice, bob, carol):
    task = await _create(
        client,
        alice,
        title="Move me",
        dueDate=_iso(datetime(2030, 1, 1, tzinfo=timezone.utc)),
        assignedTo=[bob["id"]],
    )

    r = await client.put(
        f"/api/todos/{task['id']}",
        json={"assignedTo": [carol["id"]], "dueDate": None},
        headers=alice["headers"],
    )
    assert r.status_code == 200
    assert [u["id"] for u in r.json()["assignedTo"]] == [carol["id"]]
    assert r.json()["dueDate"] is None

    assert _titles(await _list(client, bob)) == []
    assert _titles(await _list(client, carol)) == ["Move me"]


@pytest.mark.asyncio
async def test_update_blank_title_rejected(client, alice):
    task = await _create(client, alice, title="Keep")
    r = await client.put(
        f"/api/todos/{task['id']}", json={"title": "  "}, headers=alice["headers"]
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_assignee_cannot_update(client, alice, bob):
    """Assignees can see a task but updating it looks like a missing task."""
    task = await _create(client, alice, title="Alice owns", assignedTo=[bob["id"]])

    r = await client.put(
        f"/api/todos/{task['id']}", json={"completed": True}, headers=bob["headers"]
    )
    assert r.status_code == 404
    assert r.json()["message"] == "Todo not found or unauthorized"

    assert (await _list(client, alice))[0]["completed"] is False


@pytest.mark.asyncio
async def test_update_missing_and_foreign_look_the_same(client, alice, carol):
    task = await _create(client, alice, title="Alice only")

    foreign = await client.put(
        f"/api/todos/{task['id']}", json={"title": "x"}, headers=carol["headers"]
    )
    missing = await client.put(
        "/api/todos/00000000-0000-0000-0000-000000000042",
        json={"title": "x"},
        headers=carol["headers"],
    )
    malformed = await client.put(
        "/api/todos/not-a-uuid", json={"title": "x"}, headers=carol["headers"]
    )
    assert foreign.status_code == missing.status_code == malformed.status_code == 404
    assert foreign.json() == missing.json() == malformed.json()


# ═══════════════════════════════════════════════════════════
# Delete
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_delete_task(client, alice, bob):
    task = await _create(client, alice, title="Bye", assignedTo=[bob["id"]])

    r = await client.delete(f"/api/todos/{task['id']}", headers=alice["headers"])
    assert r.status_code == 200
    assert r.json() == {"message": "Todo deleted"}

    assert await _list(client, alice) == []
    assert await _list(client, bob) == []

    r = await client.delete(f"/api/todos/{task['id']}", headers=alice["headers"])
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_assignee_cannot_delete(client, alice, bob):
    task = await _create(client, alice, title="Stays", assignedTo=[bob["id"]])

    r = await client.delete(f"/api/todos/{task['id']}", headers=bob["headers"])
    assert r.status_code == 404
    assert _titles(await _list(client, alice)) == ["Stays"]


# ═══════════════════════════════════════════════════════════
# Notifications
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_assignment_notifies_assignee(client, notifier, transport, alice, bob):
    """A creates 'Ship release' for B → B gets one email, both see the task."""
    await _create(
        client, alice, title="Ship release", priority="high", assignedTo=[bob["id"]]
    )
    await notifier.drain()

    mails = transport.to(bob["email"])
    assert len(mails) == 1
    _, subject, body = mails[0]
    assert subject == "New Task Assignment"
    assert "Alice" in body
    assert "Ship release" in body
    assert "high" in body
    assert transport.to(alice["email"]) == []

    assert _titles(await _list(client, alice)) == ["Ship release"]
    assert _titles(await _list(client, bob)) == ["Ship release"]


@pytest.mark.asyncio
async def test_no_notification_without_assignees(client, notifier, transport, alice):
    await _create(client, alice, title="Solo")
    await notifier.drain()
    assert transport.sent == []


@pytest.mark.asyncio
async def test_mail_failure_does_not_fail_create(client, notifier, transport, alice, bob, carol):
    transport.fail_for.add(bob["email"])

    r = await client.post(
        "/api/todos",
        json={"title": "Still created", "assignedTo": [bob["id"], carol["id"]]},
        headers=alice["headers"],
    )
    assert r.status_code == 201
    await notifier.drain()

    assert transport.to(bob["email"]) == []
    assert len(transport.to(carol["email"])) == 1
    assert _titles(await _list(client, alice)) == ["Still created"]


# ═══════════════════════════════════════════════════════════
# Users
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_list_users(client, alice, bob):
    r = await client.get("/api/users", headers=alice["headers"])
    assert r.status_code == 200
    users = r.json()
    assert [u["name"] for u in users] == ["Alice", "Bob"]
    for u in users:
        assert set(u) == {"id", "name", "email", "avatar"}


@pytest.mark.asyncio
async def test_list_users_requires_auth(client):
    r = await client.get("/api/users")
    assert r.status_code == 401
