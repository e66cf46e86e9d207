# tests/database_implementations/test_crud.py
from datetime import datetime, timezone
from decimal import Decimal

import aiosqlite
import pytest

from async_sqlite_mapper import (EntityDescriptor, Field, SQLFragment,
                                 SQLiteDatabase, SqliteRepository,
                                 default_registry)
from async_sqlite_mapper.base.query import Condition, Operator
from tests.models import Measurement, Person, Sensor, Ticket, Widget


async def _collect(repo, logger, where=None):
    return [entity async for entity in repo.select(logger, where)]


def _people():
    return [
        Person(Name="Ann", Age=31, Active=True),
        Person(Name="Bo", Age=25, Active=False),
        Person(Name="Cy", Age=47, Active=True),
    ]


# =============================================================================
# Construction and initialization
# =============================================================================


def test_repository_requires_sqlite_database():
    with pytest.raises(TypeError):
        SqliteRepository("not-a-database", Person)


async def test_initialize_is_idempotent(repository_factory, logger):
    repo = repository_factory(Person)
    first = await repo.initialize(logger)
    second = await repo.initialize(logger)
    assert first is second
    assert first.is_ready
    assert repo.table_mapping is first


async def test_repositories_share_registry_mapping(repository_factory, database, logger):
    first = repository_factory(Person)
    second = repository_factory(Person)
    await first.initialize(logger)
    await second.initialize(logger)
    assert first.table_mapping is second.table_mapping
    assert len(database.executed("CREATE")) == 1


# =============================================================================
# Insert
# =============================================================================


async def test_insert_single_writes_back_row_id(people_repository, logger):
    person = Person(Name="Ann", Age=31, Active=True)

    inserted = await people_repository.insert(person, logger)

    assert inserted == 1
    assert person.row_id == 1
    assert people_repository.database.executed("INSERT") == [
        'INSERT INTO "People" ("Name","Age","Active") VALUES (?,?,?)'
    ]
    assert people_repository.database.executed("BEGIN") == []


async def test_insert_batch_in_one_transaction(people_repository, logger):
    people = _people()

    inserted = await people_repository.insert(people, logger)

    assert inserted == 3
    assert [p.row_id for p in people] == [1, 2, 3]
    statements = people_repository.database.statements
    assert statements[0] == "BEGIN TRANSACTION"
    assert statements[-1] == "COMMIT"
    assert len(people_repository.database.executed("INSERT")) == 3


async def test_insert_none_and_empty_do_nothing(people_repository, logger):
    assert await people_repository.insert(None, logger) == 0
    assert await people_repository.insert([], logger) == 0
    assert people_repository.database.statements == []


async def test_insert_wrong_type_raises(people_repository, logger):
    with pytest.raises(ValueError):
        await people_repository.insert(Widget(Name="gear"), logger)
    assert await people_repository.count(logger) == 0


async def test_failing_batch_rolls_back(repository_factory, database, logger):
    await database.execute(
        'CREATE TABLE "People" ("Name" TEXT NOT NULL, "Age" INT, "Active" BOOLEAN)'
    )
    repo = repository_factory(Person)
    batch = [Person(Name="Ann", Age=1), Person(Name=None, Age=2), Person(Name="Cy", Age=3)]

    with pytest.raises(aiosqlite.IntegrityError):
        await repo.insert(batch, logger)

    assert database.executed("ROLLBACK") == ["ROLLBACK"]
    assert database.executed("COMMIT") == []
    assert await repo.count(logger) == 0


async def test_invalid_entity_in_batch_rolls_back(people_repository, logger):
    batch = [Person(Name="Ann"), "not a person"]

    with pytest.raises(ValueError):
        await people_repository.insert(batch, logger)

    assert await people_repository.count(logger) == 0


# =============================================================================
# Select and count
# =============================================================================


async def test_select_materializes_entities(people_repository, logger):
    await people_repository.insert(_people(), logger)

    people = await _collect(people_repository, logger)

    assert [(p.row_id, p.Name, p.Age, p.Active) for p in people] == [
        (1, "Ann", 31, True),
        (2, "Bo", 25, False),
        (3, "Cy", 47, True),
    ]
    assert people_repository.database.executed("SELECT rowid") == ['SELECT rowid,* FROM "People"']


async def test_select_with_conditions(people_repository, logger):
    await people_repository.insert(_people(), logger)

    older = await _collect(people_repository, logger, [Field("Age") > 30, Field("Active") == True])  # noqa: E712
    assert [p.Name for p in older] == ["Ann", "Cy"]

    single = await _collect(people_repository, logger, Condition("Name", Operator.EQUALS, "Bo"))
    assert [p.Name for p in single] == ["Bo"]

    skipped = await _collect(
        people_repository, logger, [Condition("Name", Operator.EQUALS, "Bo", skip=True)]
    )
    assert len(skipped) == 3


async def test_select_with_raw_where_text(people_repository, logger):
    await people_repository.insert(_people(), logger)

    young = await _collect(people_repository, logger, 'WHERE "Age" < 30')

    assert [p.Name for p in young] == ["Bo"]
    assert 'SELECT rowid,* FROM "People" WHERE "Age" < 30' in people_repository.database.statements


async def test_select_with_fragment_and_null(people_repository, logger):
    await people_repository.insert([Person(Name="Ann"), Person(Name=None)], logger)

    nameless = await _collect(people_repository, logger, [Field("Name") == None])  # noqa: E711
    named = await _collect(people_repository, logger, SQLFragment('WHERE "Name" = ?', ("Ann",)))

    assert [p.row_id for p in nameless] == [2]
    assert [p.Name for p in named] == ["Ann"]


async def test_select_ignores_undeclared_columns(repository_factory, database, logger):
    await database.execute('CREATE TABLE "People" ("Nickname" TEXT)')
    await database.execute('INSERT INTO "People" ("Nickname") VALUES (\'Bobby\')')
    repo = repository_factory(Person)

    people = await _collect(repo, logger)

    assert len(people) == 1
    assert people[0].row_id == 1
    assert not hasattr(people[0], "Nickname")
    assert people[0].Name is None


async def test_count(people_repository, logger):
    await people_repository.insert(_people(), logger)

    assert await people_repository.count(logger) == 3
    assert await people_repository.count(logger, [Field("Active") == True]) == 2  # noqa: E712
    assert await people_repository.count(logger, 'WHERE "Age" > 100') == 0
    assert 'SELECT COUNT(rowid) FROM "People"' in people_repository.database.statements


async def test_find_one(people_repository, logger):
    await people_repository.insert(_people(), logger)

    found = await people_repository.find_one(logger, [Field("Name") == "Cy"])
    missing = await people_repository.find_one(logger, [Field("Name") == "Zed"])

    assert found.Age == 47
    assert missing is None


# =============================================================================
# Update
# =============================================================================


async def test_update_by_row_id(people_repository, logger):
    people = _people()
    await people_repository.insert(people, logger)
    people[1].Age = 26
    people[1].Active = True

    updated = await people_repository.update(people[1], logger)

    assert updated == 1
    assert people_repository.database.executed("UPDATE") == [
        'UPDATE "People" SET "Name"=?,"Age"=?,"Active"=? WHERE rowid=?'
    ]
    bo = await people_repository.find_one(logger, [Field("Name") == "Bo"])
    assert (bo.Age, bo.Active) == (26, True)


async def test_update_batch_returns_summed_count(people_repository, logger):
    people = _people()
    await people_repository.insert(people, logger)
    for person in people:
        person.Active = False

    assert await people_repository.update(people, logger) == 3
    assert await people_repository.count(logger, [Field("Active") == False]) == 3  # noqa: E712


async def test_update_without_row_id_raises(people_repository, logger):
    with pytest.raises(ValueError):
        await people_repository.update(Person(Name="Ghost"), logger)


async def test_update_missing_row_affects_nothing(people_repository, logger):
    person = Person(Name="Ghost")
    person.row_id = 99
    assert await people_repository.update(person, logger) == 0


async def test_update_entity_without_row_id_field_raises(repository_factory, logger):
    repo = repository_factory(Widget)
    widget = Widget(Name="gear", Active=True)
    await repo.insert(widget, logger)

    with pytest.raises(ValueError):
        await repo.update(widget, logger)


# =============================================================================
# Delete
# =============================================================================


async def test_delete_single(people_repository, logger):
    people = _people()
    await people_repository.insert(people, logger)

    assert await people_repository.delete(people[0], logger) == 1
    assert [p.Name for p in await _collect(people_repository, logger)] == ["Bo", "Cy"]


async def test_delete_batch_on_one_transaction(people_repository, logger):
    people = _people()
    await people_repository.insert(people, logger)
    people_repository.database.reset()

    deleted = await people_repository.delete(people, logger)

    assert deleted == 3
    assert people_repository.database.statements == [
        "BEGIN TRANSACTION",
        'DELETE FROM "People" WHERE rowid=?',
        'DELETE FROM "People" WHERE rowid=?',
        'DELETE FROM "People" WHERE rowid=?',
        "COMMIT",
    ]
    assert await people_repository.count(logger) == 0


async def test_delete_accepts_generators(people_repository, logger):
    people = _people()
    await people_repository.insert(people, logger)

    deleted = await people_repository.delete((p for p in people if p.Active), logger)

    assert deleted == 2


async def test_delete_none_does_nothing(people_repository, logger):
    assert await people_repository.delete(None, logger) == 0
    assert people_repository.database.statements == []


async def test_delete_without_row_id_raises(people_repository, logger):
    with pytest.raises(ValueError):
        await people_repository.delete(Person(Name="Ghost"), logger)


# =============================================================================
# Pydantic entities
# =============================================================================


async def test_pydantic_entity_round_trip(repository_factory, logger):
    repo = repository_factory(Measurement)
    taken = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    measurement = Measurement(
        label="probe", count=3, value=2.5, price=Decimal("1.25"), enabled=True, taken_at=taken
    )

    await repo.insert(measurement, logger)
    loaded = await repo.find_one(logger, [Field("label") == "probe"])

    assert measurement.row_id == 1
    assert loaded.row_id == 1
    assert loaded.count == 3
    assert loaded.value == 2.5
    assert loaded.price == Decimal("1.25")
    assert loaded.enabled is True
    assert loaded.taken_at == taken
    assert "row_id" not in loaded.model_dump()


async def test_pydantic_entity_batch_insert(repository_factory, logger):
    repo = repository_factory(Measurement)

    inserted = await repo.insert([Measurement(label="a"), Measurement(label="b")], logger)

    assert inserted == 2
    assert await repo.count(logger) == 2


async def test_pydantic_entity_with_storage_markers(repository_factory, database, logger):
    repo = repository_factory(Sensor)

    await repo.insert(Sensor(small=3, big=2**40, flags=7, ratio=0.5), logger)
    loaded = await repo.find_one(logger)

    assert await database.get_columns("Sensor") == [
        ("rowid", "BIGINT"),
        ("small", "SMALLINT"),
        ("big", "BIGINT"),
        ("flags", "TINYINT"),
        ("ratio", "SINGLE"),
    ]
    assert (loaded.small, loaded.big, loaded.flags, loaded.ratio) == (3, 2**40, 7, 0.5)


async def test_pydantic_entity_with_required_field(repository_factory, logger):
    repo = repository_factory(Ticket)
    await repo.insert(Ticket(code="A1", seats=2), logger)

    loaded = await repo.find_one(logger, [Field("code") == "A1"])

    assert (loaded.row_id, loaded.code, loaded.seats) == (1, "A1", 2)


# =============================================================================
# Shared default registry
# =============================================================================


@pytest.fixture
def clean_default_registry():
    default_registry.clear()
    yield default_registry
    default_registry.clear()


async def test_default_registry_reconciles_each_database(tmp_path, clean_default_registry, logger):
    first = SQLiteDatabase(str(tmp_path / "first.db"))
    second = SQLiteDatabase(str(tmp_path / "second.db"))
    await SqliteRepository(first, Person).initialize(logger)

    inserted = await SqliteRepository(second, Person).insert(Person(Name="Ann"), logger)

    assert inserted == 1
    assert len(clean_default_registry) == 2


async def test_repository_with_table_override_uses_its_table(database, clean_default_registry, logger):
    people = SqliteRepository(database, Person)
    staff = SqliteRepository(
        database, Person, descriptor=EntityDescriptor.from_type(Person, table_name="Staff")
    )
    await people.insert(Person(Name="Ann"), logger)

    await staff.insert(Person(Name="Bo"), logger)

    assert [p.Name for p in await _collect(staff, logger)] == ["Bo"]
    assert [p.Name for p in await _collect(people, logger)] == ["Ann"]
