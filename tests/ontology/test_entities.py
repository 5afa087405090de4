"""Tests for EntityRepository."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from ontostate.core.errors import (
    ConflictError,
    NotFoundError,
    ProvenanceRequiredError,
    TenantScopeRequiredError,
)
from ontostate.core.models import EntityInput, EntityUpdate, ProvenanceSource
from ontostate.ontology.entities import EntityRepository
from ontostate.ontology.ontologies import OntologyRepository
from ontostate.storage.models import Ontology

PROJECT_ID = "proj-1"


def _entity(ontology: Ontology, name: str = "customer", **kwargs) -> EntityInput:
    return EntityInput(
        project_id=PROJECT_ID,
        ontology_id=ontology.ontology_id,
        name=name,
        **kwargs,
    )


@pytest.fixture
def repo() -> EntityRepository:
    return EntityRepository()


class TestPreconditions:
    """Missing session or provenance is rejected before touching the database."""

    async def test_create_without_session(self, repo, ontology, inference):
        with pytest.raises(TenantScopeRequiredError):
            await repo.create(None, _entity(ontology), inference)

    async def test_create_without_provenance(self, repo, session, ontology):
        with pytest.raises(ProvenanceRequiredError) as exc_info:
            await repo.create(session, _entity(ontology), None)
        assert exc_info.value.operation == "entity.create"

    async def test_upsert_without_provenance(self, repo, session, ontology):
        with pytest.raises(ProvenanceRequiredError):
            await repo.upsert_by_natural_key(session, _entity(ontology), None)

    async def test_read_without_session(self, repo):
        with pytest.raises(TenantScopeRequiredError):
            await repo.get_by_id(None, "missing")


class TestCreate:
    async def test_create_records_provenance(self, repo, session: AsyncSession, ontology, manual):
        row = await repo.create(session, _entity(ontology, description="A buyer"), manual)

        assert row.entity_id is not None
        assert row.source == "manual"
        assert row.last_edit_source == "manual"
        assert row.created_by == "alice"
        assert row.is_stale is False
        assert row.is_deleted is False

    async def test_duplicate_name_conflicts(self, repo, session, ontology, inference):
        await repo.create(session, _entity(ontology), inference)
        await session.commit()

        with pytest.raises(ConflictError) as exc_info:
            await repo.create(session, _entity(ontology), inference)
        assert exc_info.value.kind == "entity"

        assert await repo.get_by_name(session, ontology.ontology_id, "customer") is not None

    async def test_conflict_keeps_earlier_uncommitted_work(self, repo, session, ontology, inference):
        await repo.create(session, _entity(ontology), inference)
        await session.commit()
        order_id = await repo.upsert_by_natural_key(session, _entity(ontology, "order"), inference)

        with pytest.raises(ConflictError):
            await repo.create(session, _entity(ontology), inference)
        await session.commit()

        assert await repo.get_by_id(session, order_id) is not None


class TestUpsert:
    async def test_insert_when_missing(self, repo, session, ontology, inference):
        entity_id = await repo.upsert_by_natural_key(
            session, _entity(ontology, primary_table="customers"), inference
        )
        row = await repo.get_by_id(session, entity_id)

        assert row is not None
        assert row.source == "inference"
        assert row.primary_table == "customers"

    async def test_keeps_id_and_creation_provenance(self, repo, session, ontology, inference, mcp):
        first = await repo.upsert_by_natural_key(session, _entity(ontology), inference)
        second = await repo.upsert_by_natural_key(session, _entity(ontology), mcp)

        assert first == second
        row = await repo.get_by_id(session, first)
        assert row.source == "inference"
        assert row.created_by is None
        assert row.last_edit_source == "mcp"
        assert row.updated_by == "agent-7"

    async def test_empty_description_keeps_existing(self, repo, session, ontology, inference):
        entity_id = await repo.upsert_by_natural_key(
            session, _entity(ontology, description="A buyer"), inference
        )
        await repo.upsert_by_natural_key(session, _entity(ontology, description=""), inference)
        await repo.upsert_by_natural_key(session, _entity(ontology, description=None), inference)

        row = await repo.get_by_id(session, entity_id)
        assert row.description == "A buyer"

    async def test_non_empty_description_overwrites(self, repo, session, ontology, inference):
        entity_id = await repo.upsert_by_natural_key(
            session, _entity(ontology, description="A buyer"), inference
        )
        await repo.upsert_by_natural_key(
            session, _entity(ontology, description="Paying account"), inference
        )

        row = await repo.get_by_id(session, entity_id)
        assert row.description == "Paying account"

    async def test_locators_overwritten(self, repo, session, ontology, inference):
        entity_id = await repo.upsert_by_natural_key(
            session,
            _entity(ontology, primary_schema="public", primary_table="customers", primary_column="id"),
            inference,
        )
        await repo.upsert_by_natural_key(
            session,
            _entity(ontology, primary_schema="crm", primary_table="accounts"),
            inference,
        )

        row = await repo.get_by_id(session, entity_id)
        assert row.primary_schema == "crm"
        assert row.primary_table == "accounts"
        assert row.primary_column is None

    async def test_soft_deleted_entity_stays_deleted(self, repo, session, ontology, inference):
        entity_id = await repo.upsert_by_natural_key(session, _entity(ontology), inference)
        await repo.soft_delete(session, entity_id, "merged into account")
        await repo.upsert_by_natural_key(session, _entity(ontology), inference)

        row = await repo.get_by_id(session, entity_id)
        assert row.is_deleted is True


class TestReads:
    async def test_soft_deleted_hidden_from_lookups(self, repo, session, ontology, inference):
        row = await repo.create(session, _entity(ontology), inference)
        await repo.soft_delete(session, row.entity_id, "duplicate")

        assert await repo.get_by_name(session, ontology.ontology_id, "customer") is None
        assert await repo.get_by_ontology(session, ontology.ontology_id) == []
        assert await repo.get_by_project(session, PROJECT_ID) == []

        fetched = await repo.get_by_id(session, row.entity_id)
        assert fetched.is_deleted is True
        assert fetched.deletion_reason == "duplicate"

    async def test_restore(self, repo, session, ontology, inference):
        row = await repo.create(session, _entity(ontology), inference)
        await repo.soft_delete(session, row.entity_id, "duplicate")
        await repo.restore(session, row.entity_id)

        fetched = await repo.get_by_name(session, ontology.ontology_id, "customer")
        assert fetched is not None
        assert fetched.deletion_reason is None

    async def test_get_by_ontology_ordered_by_name(self, repo, session, ontology, inference):
        for name in ("order", "customer", "product"):
            await repo.create(session, _entity(ontology, name), inference)

        rows = await repo.get_by_ontology(session, ontology.ontology_id)
        assert [r.name for r in rows] == ["customer", "order", "product"]

    async def test_get_by_project_only_active_ontology(self, repo, session, ontology, inference):
        await repo.create(session, _entity(ontology, "old_entity"), inference)
        newer = await OntologyRepository().create(session, PROJECT_ID)
        await repo.create(session, _entity(newer, "new_entity"), inference)

        rows = await repo.get_by_project(session, PROJECT_ID)
        assert [r.name for r in rows] == ["new_entity"]

    async def test_get_missing_returns_none(self, repo, session):
        assert await repo.get_by_id(session, "nope") is None


class TestEdits:
    async def test_update_description_clears_stale(self, repo, session, ontology, inference, manual):
        row = await repo.create(session, _entity(ontology), inference)
        await repo.mark_inference_stale(session, ontology.ontology_id)

        updated = await repo.update_description(session, row.entity_id, "Edited", manual)

        assert updated.description == "Edited"
        assert updated.is_stale is False
        assert updated.source == "inference"
        assert updated.last_edit_source == "manual"
        assert updated.updated_by == "alice"

    async def test_partial_update(self, repo, session, ontology, inference, manual):
        row = await repo.create(session, _entity(ontology, description="keep", domain="sales"), inference)

        updated = await repo.update(session, row.entity_id, EntityUpdate(domain="finance"), manual)

        assert updated.domain == "finance"
        assert updated.description == "keep"

    async def test_update_missing_raises(self, repo, session, manual):
        with pytest.raises(NotFoundError):
            await repo.update_description(session, "nope", "x", manual)

    async def test_soft_delete_missing_raises(self, repo, session):
        with pytest.raises(NotFoundError):
            await repo.soft_delete(session, "nope")


class TestTeardown:
    async def test_delete_by_provenance_keeps_manual_and_mcp(
        self, repo, session, ontology, inference, manual, mcp
    ):
        await repo.create(session, _entity(ontology, "inferred"), inference)
        curated = await repo.create(session, _entity(ontology, "curated", description="Human"), manual)
        agent = await repo.create(session, _entity(ontology, "suggested"), mcp)

        await repo.mark_inference_stale(session, ontology.ontology_id)
        deleted = await repo.delete_by_provenance(
            session, ontology.ontology_id, ProvenanceSource.INFERENCE
        )

        assert deleted == 1
        rows = await repo.get_by_ontology(session, ontology.ontology_id)
        assert [r.entity_id for r in rows] == [curated.entity_id, agent.entity_id]
        assert [r.is_stale for r in rows] == [False, False]
        assert rows[0].description == "Human"

    async def test_delete_by_provenance_cascades_aliases(self, repo, session, ontology, inference):
        row = await repo.create(session, _entity(ontology), inference)
        await repo.create_alias(session, row.entity_id, "client", inference)

        await repo.delete_by_provenance(session, ontology.ontology_id, ProvenanceSource.INFERENCE)

        assert await repo.get_aliases(session, row.entity_id) == []

    async def test_delete_by_ontology(self, repo, session, ontology, inference, manual):
        await repo.create(session, _entity(ontology, "a"), inference)
        await repo.create(session, _entity(ontology, "b"), manual)

        assert await repo.delete_by_ontology(session, ontology.ontology_id) == 2
        assert await repo.get_by_ontology(session, ontology.ontology_id) == []


class TestAliases:
    async def test_create_and_list(self, repo, session, ontology, inference, manual):
        row = await repo.create(session, _entity(ontology), inference)
        await repo.create_alias(session, row.entity_id, "client", manual)
        await repo.create_alias(session, row.entity_id, "buyer", manual)

        aliases = await repo.get_aliases(session, row.entity_id)
        assert [a.alias for a in aliases] == ["buyer", "client"]
        assert aliases[0].source == "manual"

    async def test_duplicate_alias_conflicts(self, repo, session, ontology, inference):
        row = await repo.create(session, _entity(ontology), inference)
        await repo.create_alias(session, row.entity_id, "client", inference)
        await session.commit()

        with pytest.raises(ConflictError):
            await repo.create_alias(session, row.entity_id, "client", inference)

    async def test_alias_for_missing_entity(self, repo, session, inference):
        with pytest.raises(NotFoundError):
            await repo.create_alias(session, "nope", "client", inference)

    async def test_delete_alias(self, repo, session, ontology, inference):
        row = await repo.create(session, _entity(ontology), inference)
        alias = await repo.create_alias(session, row.entity_id, "client", inference)

        await repo.delete_alias(session, alias.alias_id)

        assert await repo.get_aliases(session, row.entity_id) == []
        with pytest.raises(NotFoundError):
            await repo.delete_alias(session, alias.alias_id)
