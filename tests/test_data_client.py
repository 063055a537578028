from datetime import datetime, timedelta, timezone

import pytest

from fleetkeeper.core.exceptions import (
    DataClientError,
    InvalidCredentialsError,
    NotFoundError,
    UserAlreadyExistsError,
)
from fleetkeeper.core.security import create_access_token
from fleetkeeper.schemas.auth import AuthChangeEvent


async def _company(data_client, email: str = "fleet@acme.test") -> dict:
    session = await data_client.auth.sign_up(email, "hunter22")
    result = await data_client.table("companies").insert(
        {"name": "Acme", "user_id": session.user.id, "email": email}
    ).single().execute()
    return result.data


async def _truck(data_client, company_id: int, vin: str = "1FUJGLDR5CLBP8834", mileage: int = 1000) -> dict:
    result = await data_client.table("trucks").insert({
        "company_id": company_id,
        "vin": vin,
        "license_plate": "PLATE1",
        "year": 2020,
        "make": "Volvo",
        "model": "VNL",
        "current_mileage": mileage,
    }).single().execute()
    return result.data


@pytest.mark.asyncio
async def test_select_is_scoped_by_equality_filters(data_client) -> None:
    first = await _company(data_client, "one@acme.test")
    second = await _company(data_client, "two@acme.test")
    await _truck(data_client, first["id"], vin="AAAAAAAAAAAAAAAA1")
    await _truck(data_client, second["id"], vin="BBBBBBBBBBBBBBBB2")

    result = await data_client.table("trucks").select().eq("company_id", first["id"]).execute()

    assert result.count == 1
    assert result.data[0]["vin"] == "AAAAAAAAAAAAAAAA1"


@pytest.mark.asyncio
async def test_select_columns_order_and_limit(data_client) -> None:
    company = await _company(data_client)
    for mileage in (300, 100, 200):
        await _truck(data_client, company["id"], mileage=mileage)

    result = await (
        data_client.table("trucks")
        .select("id", "current_mileage")
        .eq("company_id", company["id"])
        .order("current_mileage", desc=True)
        .limit(2)
        .execute()
    )

    assert [row["current_mileage"] for row in result.data] == [300, 200]
    assert set(result.data[0]) == {"id", "current_mileage"}


@pytest.mark.asyncio
async def test_single_raises_not_found(data_client) -> None:
    with pytest.raises(NotFoundError):
        await data_client.table("trucks").select().eq("id", 999).single().execute()


@pytest.mark.asyncio
async def test_single_rejects_multiple_rows(data_client) -> None:
    company = await _company(data_client)
    await _truck(data_client, company["id"])
    await _truck(data_client, company["id"])

    with pytest.raises(DataClientError) as excinfo:
        await data_client.table("trucks").select().eq("company_id", company["id"]).single().execute()
    assert excinfo.value.code == "multiple_rows"


@pytest.mark.asyncio
async def test_update_returns_changed_rows(data_client) -> None:
    company = await _company(data_client)
    truck = await _truck(data_client, company["id"])

    result = await (
        data_client.table("trucks")
        .update({"current_mileage": 5000})
        .eq("id", truck["id"])
        .eq("company_id", company["id"])
        .execute()
    )

    assert result.count == 1
    assert result.data[0]["current_mileage"] == 5000


@pytest.mark.asyncio
async def test_unfiltered_mutations_are_rejected(data_client) -> None:
    with pytest.raises(DataClientError) as excinfo:
        await data_client.table("trucks").update({"current_mileage": 0}).execute()
    assert excinfo.value.code == "missing_filter"

    with pytest.raises(DataClientError) as excinfo:
        await data_client.table("trucks").delete().execute()
    assert excinfo.value.code == "missing_filter"


def test_unknown_table_and_column(data_client) -> None:
    with pytest.raises(DataClientError) as excinfo:
        data_client.table("drivers")
    assert excinfo.value.code == "unknown_table"

    with pytest.raises(DataClientError) as excinfo:
        data_client.table("trucks").select().eq("colour", "red")
    assert excinfo.value.code == "unknown_column"


@pytest.mark.asyncio
async def test_deleting_truck_removes_its_records(data_client) -> None:
    company = await _company(data_client)
    truck = await _truck(data_client, company["id"])
    await data_client.table("maintenance_records").insert({
        "company_id": company["id"],
        "truck_id": truck["id"],
        "maintenance_type": "Oil Change",
        "performed_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "mileage": 900,
    }).execute()

    deleted = await data_client.table("trucks").delete().eq("id", truck["id"]).execute()
    remaining = await data_client.table("maintenance_records").select().eq("truck_id", truck["id"]).execute()

    assert deleted.count == 1
    assert remaining.data == []


@pytest.mark.asyncio
async def test_sign_up_persists_session(data_client) -> None:
    session = await data_client.auth.sign_up("New@Acme.test", "hunter22")

    current = await data_client.auth.get_session()

    assert session.user.email == "new@acme.test"
    assert current is not None
    assert current.user.id == session.user.id


@pytest.mark.asyncio
async def test_sign_out_clears_session(data_client) -> None:
    await data_client.auth.sign_up("new@acme.test", "hunter22")
    await data_client.auth.sign_out()

    assert await data_client.auth.get_session() is None


@pytest.mark.asyncio
async def test_sign_in_with_wrong_password(data_client) -> None:
    await data_client.auth.sign_up("new@acme.test", "hunter22")
    await data_client.auth.sign_out()

    with pytest.raises(InvalidCredentialsError):
        await data_client.auth.sign_in_with_password("new@acme.test", "wrong")
    assert await data_client.auth.get_session() is None


@pytest.mark.asyncio
async def test_duplicate_sign_up_rejected(data_client) -> None:
    await data_client.auth.sign_up("new@acme.test", "hunter22")

    with pytest.raises(UserAlreadyExistsError):
        await data_client.auth.sign_up("NEW@acme.test", "another1")


@pytest.mark.asyncio
async def test_listeners_receive_events_until_unsubscribed(data_client) -> None:
    events = []

    async def listener(event, session):
        events.append((event, session.user.email if session else None))

    subscription = data_client.auth.on_auth_state_change(listener)
    await data_client.auth.sign_up("new@acme.test", "hunter22")
    await data_client.auth.sign_out()
    subscription.unsubscribe()
    await data_client.auth.sign_in_with_password("new@acme.test", "hunter22")

    assert events == [
        (AuthChangeEvent.SIGNED_IN, "new@acme.test"),
        (AuthChangeEvent.SIGNED_OUT, None),
    ]


@pytest.mark.asyncio
async def test_expired_token_is_discarded(data_client, settings) -> None:
    session = await data_client.auth.sign_up("new@acme.test", "hunter22")
    token, _ = create_access_token({"sub": session.user.id}, settings, expires_delta=timedelta(minutes=-1))
    data_client.auth._storage.set_item(settings.SESSION_COOKIE_NAME, token)

    assert await data_client.auth.get_session() is None
    assert data_client.auth._storage.get_item(settings.SESSION_COOKIE_NAME) is None


@pytest.mark.asyncio
async def test_check_connection(data_client) -> None:
    status = await data_client.check_connection()

    assert status.connected is True
    assert status.error is None
