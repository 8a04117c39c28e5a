"""
Tests for FormCatalog: registration, lookup and soft deletion.
"""

from uuid import uuid4

import pytest

from forms_kernel.domain.forms import TrueFalseQuestion
from forms_kernel.exceptions import InvalidFormDefinitionError, RecordNotFoundError


class TestFormCatalog:

    def test_register_form(self, catalog):
        form = catalog.register_form(
            "Leave of Absence",
            (TrueFalseQuestion("q1", "Returning within 30 days?"),),
            reviewer_role_ids=frozenset({"hr"}),
            required_reviewers=0,
            requires_final_approval=False,
        )

        loaded = catalog.get_definition(form.form_id)
        assert loaded == form
        assert loaded.auto_approves
        assert loaded.reviewer_role_ids == {"hr"}

    def test_register_with_explicit_id(self, catalog):
        form_id = uuid4()

        form = catalog.register_form("Fixed", form_id=form_id)

        assert form.form_id == form_id

    def test_invalid_definition_rejected(self, catalog):
        with pytest.raises(InvalidFormDefinitionError):
            catalog.register_form("Broken", required_reviewers=-2)

    def test_unknown_form(self, catalog):
        with pytest.raises(RecordNotFoundError) as exc_info:
            catalog.get_definition(uuid4())

        assert exc_info.value.entity_type == "Form"
        assert exc_info.value.code == "RECORD_NOT_FOUND"

    def test_soft_delete_hides_form(self, catalog, make_form, clock):
        form = make_form()
        clock.tick()

        deleted = catalog.soft_delete(form.form_id)

        assert deleted.is_deleted
        assert deleted.deleted_at == clock.now()
        with pytest.raises(RecordNotFoundError):
            catalog.get_definition(form.form_id)
        assert catalog.get_definition(form.form_id, include_deleted=True).is_deleted

    def test_soft_delete_twice_is_not_found(self, catalog, make_form):
        form = make_form()
        catalog.soft_delete(form.form_id)

        with pytest.raises(RecordNotFoundError):
            catalog.soft_delete(form.form_id)

    def test_list_definitions(self, catalog, make_form, clock):
        first = make_form(title="First")
        clock.tick()
        second = make_form(title="Second")
        catalog.soft_delete(first.form_id)

        live = catalog.list_definitions()
        everything = catalog.list_definitions(include_deleted=True)

        assert [f.form_id for f in live] == [second.form_id]
        assert [f.form_id for f in everything] == [first.form_id, second.form_id]

    def test_registration_logged(self, catalog, captured_logs):
        form = catalog.register_form("Logged", required_reviewers=3)

        entry = next(r for r in captured_logs() if r["message"] == "form_registered")
        assert entry["form_id"] == str(form.form_id)
        assert entry["required_reviewers"] == 3
