"""
Unit tests for placeholder substitution on the input and confirmation screens.
"""

import pytest

from form_plant.schema.form_schema import FormDefinition
from form_plant.services.template_service import (
    parse_attributes,
    render_confirmation,
    render_form,
    substitute_tags,
)


def make_definition(fields, **sections) -> FormDefinition:
    return FormDefinition.model_validate({"id": 7, "title": "Contact", "fields": fields, **sections})


FIELDS = [
    {"type": "text", "name": "name", "label": "Name", "required": True},
    {"type": "select", "name": "fruit", "label": "Fruit", "options": [
        {"value": "a", "label": "Apple"}, {"value": "b", "label": "Banana"},
    ]},
]


class TestScanner:
    """The shared bracket scanner"""

    def test_parse_attributes(self):
        """Test quoted attributes are collected"""
        assert parse_attributes(' name="email" class="wide"') == {"name": "email", "class": "wide"}

    @pytest.mark.parametrize("raw,expected", [
        (" name='email'", {"name": "email"}),
        (" name=email", {"name": "email"}),
        (' NAME="email"', {"name": "email"}),
        (" Text='Go back' id=back-1", {"text": "Go back", "id": "back-1"}),
        (' name="first" name="second"', {"name": "second"}),
        (' text=""', {"text": ""}),
    ])
    def test_attribute_quoting_and_case(self, raw, expected):
        """Test single-quoted, bare and upper-case attributes"""
        assert parse_attributes(raw) == expected

    @pytest.mark.parametrize("tag", [
        '[form_plant_value name="email"]',
        "[form_plant_value name='email']",
        "[form_plant_value name=email]",
        '[form_plant_value NAME="email"]',
        "[form_plant_value  Name = 'email' ]",
    ])
    def test_every_attribute_form_is_substituted(self, tag):
        """Test each spelling of the same tag resolves to the value"""
        form = make_definition(
            [{"type": "email", "name": "email", "label": "Email"}],
            settings={"use_confirmation_template": True, "confirmation_template": f"<p>{tag}</p>"},
        )

        html = str(render_confirmation(form, {"email": "a@b.com"}))

        assert "<p>a@b.com</p>" in html
        assert "[form_plant_value" not in html

    def test_unknown_tags_are_kept(self):
        """Test tags outside the vocabulary stay as typed"""
        html = substitute_tags('<p>[form_plant_bogus name="x"]</p>', {"field": lambda attrs: "X"})

        assert html == '<p>[form_plant_bogus name="x"]</p>'

    def test_resolver_output_is_escaped(self):
        """Test plain string results are escaped while the template is kept"""
        html = substitute_tags("<b>[form_plant_title]</b>", {"title": lambda attrs: "<i>hi</i>"})

        assert html == "<b>&lt;i&gt;hi&lt;/i&gt;</b>"


class TestInputScreen:
    """render_form"""

    def test_default_layout(self):
        """Test the default layout lists every field with label and submit button"""
        html = str(render_form(make_definition(FIELDS)))

        assert 'class="fplant-form-wrapper" id="fplant-form-7"' in html
        assert '<label for="fplant-field-name">Name <span class="required">*</span></label>' in html
        assert 'name="fruit"' in html
        assert 'class="fplant-submit-button"' in html
        assert '<input type="hidden" name="form_id" value="7">' in html
        assert "fplant_honeypot" not in html

    def test_honeypot_rendered_when_enabled(self):
        """Test the trap field appears with honeypot protection"""
        html = str(render_form(make_definition(FIELDS, spam_protection={"honeypot": True})))

        assert 'name="fplant_honeypot"' in html

    def test_custom_template_places_fields(self):
        """Test field, submit and error tags in an owner template"""
        template = (
            '<div class="row">[form_plant_field name="name" class="wide" placeholder="Your name"]</div>'
            '[form_plant_field_error name="name"]'
            '[form_plant_field name="missing"]'
            '[form_plant_submit text="Send"]'
        )
        form = make_definition(FIELDS, html_template=template, settings={"use_html_template": True})

        html = str(render_form(form))

        assert '<div class="row"><input type="text"' in html
        assert "fplant-field fplant-field-text wide" in html
        assert 'placeholder="Your name"' in html
        assert '<div class="fplant-field-error" data-field-name="name"></div>' in html
        assert ">Send</button>" in html
        # only the named field is placed
        assert 'name="fruit"' not in html

    def test_template_ignored_unless_enabled(self):
        """Test an owner template without the switch falls back to the default layout"""
        form = make_definition(FIELDS, html_template="<p>custom</p>")

        assert "<p>custom</p>" not in str(render_form(form))


class TestConfirmationScreen:
    """render_confirmation"""

    def test_default_confirmation(self):
        """Test the default review screen shows labels, values and buttons"""
        html = str(render_confirmation(make_definition(FIELDS), {"name": "Jane", "fruit": "b"}))

        assert "Please confirm your input" in html
        assert "<td>Banana</td>" in html
        assert 'class="fplant-back-button"' in html
        assert 'class="fplant-confirm-submit-button"' in html

    def test_custom_confirmation_template(self):
        """Test value tags, unknown names and button text overrides"""
        template = (
            "<h2>[form_plant_confirmation_title]</h2>"
            '<p>[form_plant_value name="name"] likes [form_plant_value name="fruit"]</p>'
            '<p>[form_plant_value name="ghost"]</p>'
            '[form_plant_back text="Edit"][form_plant_confirm_submit]'
        )
        form = make_definition(FIELDS, settings={
            "use_confirmation_template": True,
            "confirmation_template": template,
            "confirmation_title": "Check this",
        })

        html = str(render_confirmation(form, {"name": "<Jane>", "fruit": "a"}))

        assert "<h2>Check this</h2>" in html
        assert "<p>&lt;Jane&gt; likes Apple</p>" in html
        assert "<p></p>" in html
        assert ">Edit</button>" in html
