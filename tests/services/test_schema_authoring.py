"""Unit tests for schema authoring and append-only evolution."""

from __future__ import annotations

import pytest

from cmaas_console.schemas.content import ContentType
from cmaas_console.services.schema_authoring import (
    DraftState,
    SchemaDraft,
    SchemaRule,
    SchemaValidationError,
)


def _existing() -> ContentType:
    return ContentType.model_validate(
        {
            "id": 7,
            "name": "Product",
            "schema": {"fields": [{"name": "title", "type": "string"}, {"name": "sku", "type": "string"}]},
        }
    )


# ---------------------------------------------------------------------------
# Create mode
# ---------------------------------------------------------------------------


class TestCreateMode:
    def test_add_fields_in_order(self):
        draft = SchemaDraft("Article")
        draft.add_field("title")
        draft.add_field("views", "number")
        assert [(f.name, f.type) for f in draft.fields] == [("title", "string"), ("views", "number")]

    def test_duplicate_rejected_without_mutation(self):
        draft = SchemaDraft("Article")
        draft.add_field("Title")
        with pytest.raises(SchemaValidationError) as exc_info:
            draft.add_field("title ")
        assert exc_info.value.rule is SchemaRule.FIELD_NAME_DUPLICATE
        assert len(draft.fields) == 1

    def test_blank_names_do_not_collide(self):
        draft = SchemaDraft("Article")
        draft.add_field()
        draft.add_field()
        assert len(draft.new_fields) == 2

    def test_unknown_kind_rejected(self):
        with pytest.raises(SchemaValidationError) as exc_info:
            SchemaDraft("Article").add_field("where", "geo-point")
        assert exc_info.value.rule is SchemaRule.FIELD_KIND_UNKNOWN

    def test_rename_and_retype(self):
        draft = SchemaDraft("Article")
        i = draft.add_field("titel")
        draft.rename_field(i, "title")
        draft.set_field_kind(i, "richtext")
        assert draft.fields[0].name == "title"
        assert draft.fields[0].type == "richtext"

    def test_rename_to_own_name_allowed(self):
        draft = SchemaDraft("Article")
        i = draft.add_field("title")
        draft.rename_field(i, "Title")
        assert draft.fields[0].name == "Title"

    def test_payload_trims_names(self):
        draft = SchemaDraft("  Article ")
        draft.add_field("  title  ")
        payload = draft.payload()
        assert payload.name == "Article"
        assert payload.schema_.fields[0].name == "title"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidate:
    def test_name_required(self):
        draft = SchemaDraft("   ")
        draft.add_field("title")
        with pytest.raises(SchemaValidationError) as exc_info:
            draft.validate()
        assert exc_info.value.rule is SchemaRule.NAME_REQUIRED
        assert exc_info.value.message == "Please enter a Content Type Name"

    def test_fields_required(self):
        with pytest.raises(SchemaValidationError) as exc_info:
            SchemaDraft("Article").validate()
        assert exc_info.value.rule is SchemaRule.FIELDS_REQUIRED

    def test_field_names_required(self):
        draft = SchemaDraft("Article")
        draft.add_field("")
        with pytest.raises(SchemaValidationError) as exc_info:
            draft.validate()
        assert exc_info.value.rule is SchemaRule.FIELD_NAME_REQUIRED

    def test_name_checked_before_fields(self):
        with pytest.raises(SchemaValidationError) as exc_info:
            SchemaDraft("").validate()
        assert exc_info.value.rule is SchemaRule.NAME_REQUIRED

    def test_unchecked_add_defers_duplicate_to_validate(self):
        draft = SchemaDraft("")
        draft.add_field("a", check=False)
        draft.add_field("A", check=False)
        assert len(draft.new_fields) == 2
        with pytest.raises(SchemaValidationError) as exc_info:
            draft.validate()
        assert exc_info.value.rule is SchemaRule.NAME_REQUIRED

        draft.name = "Article"
        with pytest.raises(SchemaValidationError) as exc_info:
            draft.validate()
        assert exc_info.value.rule is SchemaRule.FIELD_NAME_DUPLICATE


# ---------------------------------------------------------------------------
# Evolution mode
# ---------------------------------------------------------------------------


class TestEvolution:
    def test_locked_fields_first(self):
        draft = SchemaDraft.from_content_type(_existing())
        draft.add_field("price", "number")
        assert [f.name for f in draft.fields] == ["title", "sku", "price"]
        assert draft.evolving

    def test_collision_with_locked_field(self):
        draft = SchemaDraft.from_content_type(_existing())
        with pytest.raises(SchemaValidationError) as exc_info:
            draft.add_field("SKU")
        assert str(exc_info.value) == 'Field name "SKU" already exists!'
        assert draft.new_fields == []

    def test_indices_address_new_fields_only(self):
        draft = SchemaDraft.from_content_type(_existing())
        draft.add_field("price", "number")
        draft.remove_field(0)
        assert [f.name for f in draft.fields] == ["title", "sku"]

    def test_locked_fields_unchanged(self):
        ct = _existing()
        draft = SchemaDraft.from_content_type(ct)
        draft.add_field("price", "number")
        assert draft.locked_fields == ct.fields

    def test_unchanged_schema_is_still_valid(self):
        SchemaDraft.from_content_type(_existing()).validate()


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


class TestSubmit:
    async def test_create_posts(self, cms, cms_client):
        draft = SchemaDraft("Article")
        draft.add_field("title")
        saved = await draft.submit(cms_client)
        assert saved.field_names == ["title"]
        assert draft.state is DraftState.SUBMITTED
        assert len(cms.calls("POST", "/api/ContentTypes")) == 1

    async def test_evolution_puts_merged_schema(self, cms, cms_client, articles):
        ct = await cms_client.get_content_type(articles["id"])
        draft = SchemaDraft.from_content_type(ct)
        draft.add_field("price", "number")
        await draft.submit(cms_client)
        stored = cms.content_types[articles["id"]]["schema"]["fields"]
        assert [f["name"] for f in stored] == ["title", "views", "published", "tags", "price"]
        assert len(cms.calls("PUT", "/api/ContentTypes")) == 1

    async def test_invalid_draft_never_writes(self, cms, cms_client):
        with pytest.raises(SchemaValidationError):
            await SchemaDraft("").submit(cms_client)
        assert cms.requests == []

    async def test_finished_draft_is_closed(self, cms_client):
        draft = SchemaDraft("Article")
        draft.add_field("title")
        await draft.submit(cms_client)
        with pytest.raises(RuntimeError):
            draft.add_field("more")

    def test_abandon_writes_nothing(self):
        draft = SchemaDraft("Article")
        draft.abandon()
        assert draft.state is DraftState.ABANDONED
        with pytest.raises(RuntimeError):
            draft.abandon()
