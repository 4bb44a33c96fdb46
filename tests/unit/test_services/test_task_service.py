"""Tests for the task service."""

import pytest

from src.models.task import TaskStatus
from src.services.store import ListParams
from src.services.task_service import TaskService
from src.utils.config import AppConfig
from src.utils.errors import ConflictError, ForbiddenError, NotFoundError, RequestValidationError
from tests.utils.assertions import assert_envelope
from tests.utils.factories import make_task


@pytest.fixture
def service(store, users):
    return TaskService(store)


@pytest.fixture
def owned_task(seed_task, users):
    return seed_task(make_task(created_by=users["owner"].id, assigned_to=users["assignee"].id))


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_task_assigns_creator_for_regular_user(service, principals, store):
    created = await service.create_task(principals["owner"], {
        "title": "  Prepare slides ",
        "assignedTo": principals["outsider"].id,
        "status": "completed",
    })

    assert created["title"] == "Prepare slides"
    assert created["createdBy"] == principals["owner"].id
    assert created["assignedTo"] == principals["owner"].id
    assert created["status"] == "pending"
    assert created["completedAt"] is None
    assert_envelope(created, canEdit=True, canDelete=True, canAssign=False, canComment=True)
    assert store.row(AppConfig.TASKS_TABLE, created["id"]) is not None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_admin_create_can_assign_and_complete(service, principals):
    created = await service.create_task(principals["admin"], {
        "title": "Audit",
        "assignedTo": principals["assignee"].id,
        "status": "completed",
    })

    assert created["assignedTo"] == principals["assignee"].id
    assert created["status"] == "completed"
    assert created["completedAt"] is not None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_admin_create_with_unknown_assignee(service, principals):
    with pytest.raises(NotFoundError) as exc:
        await service.create_task(principals["admin"], {"title": "Audit", "assignedTo": "nobody"})
    assert exc.value.entity == "User"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_requires_title(service, principals):
    with pytest.raises(RequestValidationError):
        await service.create_task(principals["owner"], {"title": "   "})


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_task_permissions(service, principals, owned_task):
    as_assignee = await service.get_task(principals["assignee"], owned_task.id)
    assert_envelope(as_assignee, canEdit=False, canDelete=False, canAssign=False, canComment=True)

    as_admin = await service.get_task(principals["admin"], owned_task.id)
    assert_envelope(as_admin, canEdit=True, canDelete=True, canAssign=True)

    with pytest.raises(ForbiddenError):
        await service.get_task(principals["outsider"], owned_task.id)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_missing_task_is_not_found_before_permission(service, principals):
    with pytest.raises(NotFoundError):
        await service.get_task(principals["outsider"], "missing")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_assignee_status_update_is_forbidden(service, principals, owned_task, store):
    """Task{createdBy=U1, assignedTo=U2}: U2 (role user) cannot PUT status."""
    with pytest.raises(ForbiddenError):
        await service.update_task(principals["assignee"], owned_task.id, {"status": "completed"})

    row = store.row(AppConfig.TASKS_TABLE, owned_task.id)
    assert row["status"] == "pending"
    assert row["completed_at"] is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_owner_status_change_is_silently_ignored(service, principals, owned_task, store):
    updated = await service.update_task(principals["owner"], owned_task.id, {
        "title": "Renamed",
        "status": "completed",
        "assignedTo": principals["outsider"].id,
    })

    assert updated["title"] == "Renamed"
    assert updated["status"] == "pending"
    assert updated["completedAt"] is None
    assert updated["assignedTo"] == principals["assignee"].id


@pytest.mark.unit
@pytest.mark.asyncio
async def test_admin_completes_task_once(service, principals, owned_task, store):
    first = await service.update_task(principals["admin"], owned_task.id, {"status": "completed"})
    second = await service.update_task(principals["admin"], owned_task.id, {"status": "completed"})

    assert first["status"] == "completed"
    assert first["completedAt"] is not None
    assert second["completedAt"] == first["completedAt"]
    # Second request changes nothing, so nothing is written
    assert len(store.updates) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_status_write_is_guarded_on_current_status(service, principals, owned_task, store):
    await service.update_task(principals["admin"], owned_task.id, {"status": "on-hold"})

    _, _, changes, expected = store.updates[-1]
    assert expected == {"status": "pending"}
    assert changes["status"] == "on-hold"
    assert "updated_at" in changes


@pytest.mark.unit
@pytest.mark.asyncio
async def test_reopening_clears_completed_at(service, principals, owned_task):
    await service.update_task(principals["admin"], owned_task.id, {"status": "completed"})
    reopened = await service.update_task(principals["admin"], owned_task.id, {"status": "pending"})

    assert reopened["status"] == "pending"
    assert reopened["completedAt"] is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_concurrent_status_change_is_retried(service, principals, owned_task, store):
    def someone_else_completes(s):
        row = s.row(AppConfig.TASKS_TABLE, owned_task.id)
        row.update({"status": "completed", "completed_at": "2024-12-09T10:00:00Z"})

    store.before_update.append(someone_else_completes)
    updated = await service.update_task(principals["admin"], owned_task.id, {"status": "on-hold"})

    # Retry starts from the completed state, so completed_at is cleared
    assert updated["status"] == "on-hold"
    assert updated["completedAt"] is None
    assert len(store.updates) == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_conflict_after_exhausting_retries(service, principals, owned_task, store):
    statuses = iter(["in-progress", "on-hold", "pending", "in-progress", "on-hold", "pending"])

    def flip(s):
        s.row(AppConfig.TASKS_TABLE, owned_task.id)["status"] = next(statuses)

    store.before_update.extend([flip] * AppConfig.WRITE_RETRY_ATTEMPTS)
    with pytest.raises(ConflictError):
        await service.update_task(principals["admin"], owned_task.id, {"status": "completed"})


@pytest.mark.unit
@pytest.mark.asyncio
async def test_admin_assign_to_missing_user(service, principals, owned_task):
    with pytest.raises(NotFoundError) as exc:
        await service.update_task(principals["admin"], owned_task.id, {"assignedTo": "ghost"})
    assert str(exc.value) == "User not found"

    with pytest.raises(NotFoundError):
        await service.assign_task(principals["admin"], owned_task.id, "ghost")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_assign_task(service, principals, owned_task):
    assigned = await service.assign_task(principals["admin"], owned_task.id, principals["outsider"].id)
    assert assigned["assignedTo"] == principals["outsider"].id

    with pytest.raises(ForbiddenError):
        await service.assign_task(principals["owner"], owned_task.id, principals["outsider"].id)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_owner_edits_details(service, principals, owned_task):
    updated = await service.update_task(principals["owner"], owned_task.id, {
        "tags": ["q4"],
        "priority": "critical",
        "dueDate": "2024-12-20T17:00:00Z",
    })

    assert updated["tags"] == ["q4"]
    assert updated["priority"] == "critical"
    assert updated["dueDate"].startswith("2024-12-20T17:00:00")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete_task_permissions(service, principals, owned_task, store):
    with pytest.raises(ForbiddenError):
        await service.delete_task(principals["assignee"], owned_task.id)

    await service.delete_task(principals["owner"], owned_task.id)
    assert store.row(AppConfig.TASKS_TABLE, owned_task.id) is None

    with pytest.raises(NotFoundError):
        await service.delete_task(principals["owner"], owned_task.id)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_tasks_scoped_to_requester(service, principals, users, seed_task):
    owner, assignee, outsider = users["owner"].id, users["assignee"].id, users["outsider"].id
    mine = seed_task(make_task(created_by=owner))
    delegated = seed_task(make_task(created_by=outsider, assigned_to=owner))
    seed_task(make_task(created_by=outsider, assigned_to=assignee))

    page = await service.list_tasks(principals["owner"])
    assert {t["id"] for t in page["data"]} == {mine.id, delegated.id}
    assert page["total"] == 2

    everything = await service.list_tasks(principals["admin"])
    assert everything["total"] == 3


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_tasks_envelopes_and_paging(service, principals, users, seed_task):
    owner, outsider = users["owner"].id, users["outsider"].id
    for _ in range(3):
        seed_task(make_task(created_by=owner))
    seed_task(make_task(created_by=outsider, assigned_to=owner))

    page = await service.list_tasks(principals["owner"], ListParams(limit=3))
    assert page["count"] == 3
    assert page["total"] == 4
    assert page["pages"] == 2

    everything = await service.list_tasks(principals["owner"], ListParams(limit=10))
    for item in everything["data"]:
        assert item["canEdit"] == (item["createdBy"] == owner)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_admin_can_filter_by_assignee(service, principals, users, seed_task):
    seed_task(make_task(created_by=users["owner"].id, assigned_to=users["assignee"].id))
    seed_task(make_task(created_by=users["owner"].id, assigned_to=users["owner"].id))

    page = await service.list_tasks(principals["admin"], assigned_to=users["assignee"].id)
    assert page["total"] == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_equivalent_to_can_view(service, principals, users, seed_task):
    ids = [users[k].id for k in ("owner", "assignee", "outsider")]
    tasks = [
        seed_task(make_task(created_by=creator, assigned_to=assignee))
        for creator in ids
        for assignee in [None, *ids]
    ]

    for key in ("owner", "assignee", "outsider"):
        principal = principals[key]
        listed = {t["id"] for t in (await service.list_tasks(principal, ListParams(limit=100)))["data"]}
        for task in tasks:
            viewable = True
            try:
                await service.get_task(principal, task.id)
            except ForbiddenError:
                viewable = False
            assert (task.id in listed) == viewable


@pytest.mark.unit
@pytest.mark.asyncio
async def test_assignable_users_admin_only(service, principals, users):
    listed = await service.list_assignable_users(principals["admin"])
    ids = {u["id"] for u in listed}

    assert ids == {users["owner"].id, users["assignee"].id, users["outsider"].id}
    assert all("passwordHash" not in u for u in listed)

    with pytest.raises(ForbiddenError):
        await service.list_assignable_users(principals["owner"])


@pytest.mark.unit
@pytest.mark.asyncio
async def test_search_matches_tags_within_scope(service, principals, users, seed_task):
    owner, outsider = users["owner"].id, users["outsider"].id
    tagged = seed_task(make_task(
        created_by=owner, title="Quarterly numbers", description="Spreadsheet", tags=["finance"],
    ))
    seed_task(make_task(created_by=owner, title="Team offsite", description="Book venue", tags=["travel"]))
    seed_task(make_task(created_by=outsider, title="Audit", description="Ledger", tags=["finance"]))

    page = await service.list_tasks(principals["owner"], ListParams(search="finance"))

    assert [t["id"] for t in page["data"]] == [tagged.id]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_blank_title_update_rejected(service, principals, owned_task, store):
    with pytest.raises(RequestValidationError):
        await service.update_task(principals["owner"], owned_task.id, {"title": "   "})

    assert store.row("tasks", owned_task.id)["title"] == owned_task.title
