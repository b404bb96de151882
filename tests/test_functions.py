from types import SimpleNamespace

import pytest

from storefront.db import functions
from storefront.db.models import RoleEnum
from storefront.errors import ValidationError


async def test_seed_menu_only_fills_empty_catalog(db):
    assert await functions.seed_menu_items(db) == 8
    assert await functions.seed_menu_items(db) == 0
    items = await functions.get_all_menu_items(db)
    assert [item.id for item in items] == list(range(1, 9))
    assert items[0].name == "Classic Burger"
    assert items[0].price == 1299


async def test_create_menu_item_validates(db):
    with pytest.raises(ValidationError) as exc:
        await functions.create_menu_item(db, name="", price=5)
    assert exc.value.field == "name"

    with pytest.raises(ValidationError) as exc:
        await functions.create_menu_item(db, name="   ", price=5)
    assert exc.value.field == "name"

    with pytest.raises(ValidationError) as exc:
        await functions.create_menu_item(db, name="X", price=-1)
    assert exc.value.field == "price"

    with pytest.raises(ValidationError):
        await functions.create_menu_item(db, name="X", price=12.5)

    assert await functions.get_all_menu_items(db) == []


async def test_create_then_get_round_trip(db):
    created = await functions.create_menu_item(db, name="Dune", price=1850, description="Sci-fi",
                                               category="Books")
    fetched = await functions.get_menu_item_by_id(db, created.id)
    assert fetched is not None
    assert (fetched.id, fetched.name, fetched.price, fetched.description, fetched.category) == \
           (created.id, "Dune", 1850, "Sci-fi", "Books")
    assert fetched.image_url is None
    assert await functions.get_menu_item_by_id(db, created.id + 100) is None


async def test_add_to_cart_sums_quantities_into_one_row(db):
    for quantity in (1, 2, 4):
        await functions.add_to_cart(db, user_id=1, menu_item_id=5, quantity=quantity)
    rows = await functions.get_cart_items_by_user_id(db, 1)
    assert len(rows) == 1
    assert rows[0][0].quantity == 7


async def test_add_increments_in_the_database_not_from_a_stale_copy(database):
    async with database.session_factory() as first, database.session_factory() as second:
        await functions.add_to_cart(first, user_id=1, menu_item_id=5, quantity=2)
        # second session adds while first still holds its copy of the row
        await functions.add_to_cart(second, user_id=1, menu_item_id=5, quantity=1)
        row = await functions.add_to_cart(first, user_id=1, menu_item_id=5, quantity=1)
        assert row.quantity == 4

    async with database.session_factory() as fresh:
        rows = await functions.get_cart_items_by_user_id(fresh, 1)
    assert [c.quantity for c, _ in rows] == [4]


async def test_add_retries_when_the_row_appears_between_update_and_insert(database, monkeypatch):
    async with database.session_factory() as other:
        await functions.add_to_cart(other, user_id=1, menu_item_id=5, quantity=2)

    async with database.session_factory() as db:
        real_execute = db.execute
        calls = []

        async def execute(statement, *args, **kwargs):
            calls.append(statement)
            if len(calls) == 1:
                # the increment misses: the row was created right after it
                return SimpleNamespace(rowcount=0)
            return await real_execute(statement, *args, **kwargs)

        monkeypatch.setattr(db, "execute", execute)
        row = await functions.add_to_cart(db, user_id=1, menu_item_id=5, quantity=3)
        assert row.quantity == 5

    async with database.session_factory() as fresh:
        rows = await functions.get_cart_items_by_user_id(fresh, 1)
    assert [c.quantity for c, _ in rows] == [5]


async def test_add_that_drops_quantity_to_zero_deletes_the_row(db):
    await functions.add_to_cart(db, user_id=1, menu_item_id=5, quantity=2)
    assert await functions.add_to_cart(db, user_id=1, menu_item_id=5, quantity=-2) is None
    assert await functions.get_cart_items_by_user_id(db, 1) == []


async def test_add_new_row_needs_positive_quantity(db):
    with pytest.raises(ValidationError):
        await functions.add_to_cart(db, user_id=1, menu_item_id=5, quantity=0)
    assert await functions.get_cart_items_by_user_id(db, 1) == []


async def test_cart_rows_join_menu_items_and_tolerate_dangling(db):
    item = await functions.create_menu_item(db, name="Tea", price=300)
    await functions.add_to_cart(db, 1, item.id)
    await functions.add_to_cart(db, 1, 424242)

    rows = await functions.get_cart_items_by_user_id(db, 1)
    assert [(c.menu_item_id, m.name if m else None) for c, m in rows] == [(item.id, "Tea"), (424242, None)]


async def test_update_to_zero_deletes_and_ownership_is_enforced(db):
    mine = await functions.add_to_cart(db, 1, 10, 2)
    theirs = await functions.add_to_cart(db, 2, 10, 3)

    await functions.update_cart_item_quantity(db, theirs.id, 1, 9)
    await functions.update_cart_item_quantity(db, theirs.id, 1, 0)
    await functions.remove_from_cart(db, theirs.id, 1)
    other = await functions.get_cart_items_by_user_id(db, 2)
    assert [(c.id, c.quantity) for c, _ in other] == [(theirs.id, 3)]

    await functions.update_cart_item_quantity(db, mine.id, 1, 0)
    assert await functions.get_cart_items_by_user_id(db, 1) == []

    # already gone, still fine
    await functions.update_cart_item_quantity(db, mine.id, 1, 0)
    await functions.remove_from_cart(db, mine.id, 1)


async def test_clear_cart_only_touches_owner(db):
    await functions.add_to_cart(db, 1, 1)
    await functions.add_to_cart(db, 1, 2)
    await functions.add_to_cart(db, 2, 1)

    await functions.clear_cart(db, 1)
    await functions.clear_cart(db, 1)

    assert await functions.get_cart_items_by_user_id(db, 1) == []
    assert len(await functions.get_cart_items_by_user_id(db, 2)) == 1


async def test_cart_ids_are_not_reused(db):
    first = await functions.add_to_cart(db, 1, 1)
    first_id = first.id
    await functions.remove_from_cart(db, first_id, 1)
    second = await functions.add_to_cart(db, 1, 1)
    assert second.id > first_id


async def test_upsert_user(db):
    with pytest.raises(ValidationError):
        await functions.upsert_user(db, "")

    user = await functions.upsert_user(db, "abc", name="Ann")
    again = await functions.upsert_user(db, "abc", email="ann@example.com")
    assert again.id == user.id
    assert again.name == "Ann"
    assert again.email == "ann@example.com"
    assert again.role == RoleEnum.user

    admin = await functions.upsert_user(db, "root", role=RoleEnum.admin)
    assert (await functions.get_user_by_open_id(db, "root")).role == RoleEnum.admin
    assert (await functions.get_user_by_id(db, admin.id)).open_id == "root"
