"""
Tests for form CRUD, metadata sections and trash handling.
"""

import pytest

from form_plant.constants.error import ERROR
from form_plant.exceptions import CustomException
from form_plant.models.submission_model import Submission
from form_plant.schema.form_schema import FormCreate, FormSection, FormStatus, FormUpdate
from form_plant.schema.submission_schema import SubmissionPayload
from form_plant.services.form_service import (
    create_form,
    delete_form,
    duplicate_form,
    get_form,
    get_form_definition,
    get_form_list,
    prepare_fields,
    restore_form,
    save_form_meta,
    serialize_form,
    trash_form,
    update_form,
)
from form_plant.services.submission_record_service import insert_submission


def new_form(db, title="Contact", status=FormStatus.PUBLISHED, **sections):
    return create_form(db, FormCreate(title=title, status=status, **sections))


class TestFieldPreparation:
    """prepare_fields"""

    def test_defaults_and_derived_names(self):
        """Test missing names come from labels and type defaults are filled"""
        fields = prepare_fields([
            {"type": "text", "label": "Full Name"},
            {"type": "file", "name": "cv"},
        ])

        assert fields[0]["name"] == "full_name"
        assert fields[1]["max_size"] == 5.0
        assert fields[1]["allowed_types"] == ["jpg", "jpeg", "png", "gif", "pdf"]

    @pytest.mark.parametrize("raw,message", [
        ({"name": "x"}, ERROR.FIELD_TYPE_MISSING),
        ({"type": "text"}, ERROR.FIELD_NAME_MISSING),
        ({"type": "text", "name": "has space"}, ERROR.FIELD_NAME_INVALID),
        ({"type": "rating", "name": "stars"}, ERROR.FIELD_TYPE_UNSUPPORTED),
    ])
    def test_bad_definitions(self, raw, message):
        """Test each malformed field is a 400 naming the problem"""
        with pytest.raises(CustomException) as excinfo:
            prepare_fields([raw])
        assert excinfo.value.status_code == 400
        assert excinfo.value.message.startswith(message)

    def test_duplicate_names(self):
        """Test field names must be unique"""
        with pytest.raises(CustomException) as excinfo:
            prepare_fields([{"type": "text", "name": "a"}, {"type": "email", "name": "a"}])
        assert excinfo.value.message == f"{ERROR.FIELD_NAME_DUPLICATE}: a"


class TestCrud:
    """Create, read, update, delete"""

    def test_create_and_serialize(self, test_db):
        """Test sections are normalized on create"""
        form = new_form(
            test_db,
            fields=[{"type": "email", "name": "email", "label": "Email"}],
            settings={"use_confirmation": True},
            spam_protection={"honeypot": True},
        )

        data = serialize_form(form)

        assert data["id"] == form.id
        assert data["status"] == "published"
        assert data["settings"]["use_confirmation"] is True
        assert data["settings"]["action_type"] == "message"
        assert data["spam_protection"]["rate_limit_count"] == 3
        assert data["fields"][0]["class"] == ""
        assert data["created_at"]

    def test_invalid_section_value(self, test_db):
        """Test a wrongly typed setting is a 400"""
        with pytest.raises(CustomException) as excinfo:
            new_form(test_db, spam_protection={"rate_limit_count": "many"})
        assert excinfo.value.status_code == 400
        assert "rate_limit_count" in excinfo.value.message

    def test_get_missing(self, test_db):
        """Test 404 for an unknown form"""
        with pytest.raises(CustomException) as excinfo:
            get_form(test_db, 999)
        assert excinfo.value.message == ERROR.FORM_NOT_FOUND

    def test_update_keeps_untouched_sections(self, test_db):
        """Test a partial update replaces only the given parts"""
        form = new_form(test_db, settings={"success_message": "Thanks"})

        updated = update_form(test_db, form.id, FormUpdate(title="Renamed", html_template="<p>x</p>"))

        assert updated.title == "Renamed"
        assert updated.html_template == "<p>x</p>"
        assert updated.settings["success_message"] == "Thanks"

    def test_save_meta_section(self, test_db):
        """Test one section is replaced as a whole"""
        form = new_form(test_db, settings={"success_message": "Thanks", "use_confirmation": True})

        saved = save_form_meta(test_db, form.id, FormSection.SETTINGS, {"success_message": "Done"})

        assert saved.settings["success_message"] == "Done"
        assert saved.settings["use_confirmation"] is False

    def test_save_meta_fields_must_be_a_list(self, test_db):
        """Test the fields section rejects a non-list value"""
        form = new_form(test_db)

        with pytest.raises(CustomException) as excinfo:
            save_form_meta(test_db, form.id, FormSection.FIELDS, {"type": "text"})
        assert excinfo.value.status_code == 400

    def test_delete_removes_submissions(self, test_db):
        """Test a hard delete takes the form's submissions with it"""
        form = new_form(test_db)
        keep = new_form(test_db, title="Keep")
        insert_submission(test_db, form.id, SubmissionPayload(form_data={"a": "1"}))
        insert_submission(test_db, keep.id, SubmissionPayload(form_data={"a": "2"}))

        delete_form(test_db, form.id)

        assert get_form_definition(test_db, form.id) is None
        assert [row.form_id for row in test_db.query(Submission).all()] == [keep.id]


class TestLifecycle:
    """Trash, restore, duplicate and listing"""

    def test_trash_and_restore(self, test_db):
        """Test restore returns the status held before trashing"""
        form = new_form(test_db, status=FormStatus.PRIVATE)

        trash_form(test_db, form.id)
        assert get_form_definition(test_db, form.id) is None
        assert get_form_definition(test_db, form.id, include_trashed=True).status == FormStatus.TRASH

        restored = restore_form(test_db, form.id)
        assert restored.status == "private"
        assert restored.previous_status is None

    def test_duplicate(self, test_db):
        """Test the copy is a draft with the same definition"""
        form = new_form(test_db, fields=[{"type": "text", "name": "name"}], settings={"success_message": "Hi"})

        copy = duplicate_form(test_db, form.id)

        assert copy.id != form.id
        assert copy.title == "Contact (Copy)"
        assert copy.status == "draft"
        assert copy.fields == form.fields
        assert copy.settings["success_message"] == "Hi"

    def test_list_hides_trash_unless_asked(self, test_db):
        """Test status filter, search and submission counts"""
        visible = new_form(test_db, title="Newsletter signup")
        new_form(test_db, title="Old survey", status=FormStatus.TRASH)
        insert_submission(test_db, visible.id, SubmissionPayload())

        listing = get_form_list(test_db, None, None, 1, 20)
        assert [item["title"] for item in listing["forms"]] == ["Newsletter signup"]
        assert listing["forms"][0]["submission_count"] == 1

        trashed = get_form_list(test_db, "trash", None, 1, 20)
        assert trashed["total"] == 1

        assert get_form_list(test_db, None, "letter", 1, 20)["total"] == 1
        assert get_form_list(test_db, None, "nothing", 1, 20)["total"] == 0
