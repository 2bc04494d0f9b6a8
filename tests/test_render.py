"""DocumentRenderer and body-markup tests."""

from datetime import datetime, timezone

import pytest

from relocation_flows.models.artifact import Artifact, ContentSection, DownloadFormat
from relocation_flows.models.flow import FlowType
from relocation_flows.render import PRINT_SCRIPT, DocumentRenderer, format_body, safe_filename

GENERATED_AT = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


def _artifact(flow_type=FlowType.APOSTILLE, title="Apostille Guide", **kwargs):
    defaults = dict(
        handle="guide_1_abc",
        subject_id="42",
        flow_type=flow_type,
        title=title,
        subtitle="Customized for Jane",
        sections=[
            ContentSection(heading="1. What is an Apostille?", body="An official certificate."),
            ContentSection(heading="2. Texas", items=["Agency: Texas Secretary of State"]),
        ],
        created_at=GENERATED_AT,
        ttl_seconds=3600,
    )
    defaults.update(kwargs)
    return Artifact(**defaults)


@pytest.fixture(scope="module")
def renderer():
    return DocumentRenderer()


class TestFormatBody:

    def test_header_markup_becomes_h3(self):
        out = format_body("**<u>Introduction</u>**\nDear Consul,")
        assert out == "<h3>Introduction</h3>\nDear Consul,"

    def test_bold_and_underline(self):
        out = format_body("A **bold** and <u>underlined</u> word")
        assert "<strong>bold</strong>" in out
        assert "<u>underlined</u>" in out

    def test_everything_else_is_escaped(self):
        out = format_body('<script>alert(1)</script>\n<u onclick="x">hi</u>')
        assert "<script>" not in out
        assert "&lt;script&gt;" in out
        assert "<u onclick" not in out

    def test_newlines_become_breaks_but_not_around_headers(self):
        out = format_body("line one\nline two\n\n**<u>Next</u>**\n\nbody")
        assert "line one<br>\nline two" in out
        assert "<br>\n<h3>" not in out
        assert "</h3><br>" not in out
        assert out.endswith("<h3>Next</h3>\nbody")

    def test_empty(self):
        assert format_body("") == ""


class TestSafeFilename:

    @pytest.mark.parametrize("title, expected", [
        ("Jane Doe - Visa Cover Letter", "Jane-Doe-Visa-Cover-Letter"),
        ("../../etc/passwd", "etc-passwd"),
        ("***", "document"),
        ("Crédit Agricole", "Crédit-Agricole"),
    ])
    def test_safe_filename(self, title, expected):
        assert safe_filename(title) == expected


class TestRenderer:

    def test_primary_is_word_compatible_doc(self, renderer):
        rendered = renderer.render(_artifact(), DownloadFormat.PRIMARY, generated_at=GENERATED_AT)
        assert rendered.extension == "doc"
        assert rendered.name == "Apostille-Guide-2026-10-01.doc"
        assert PRINT_SCRIPT not in rendered.html
        assert "<h1>Apostille Guide</h1>" in rendered.html
        assert "Customized for Jane" in rendered.html
        assert "October 01, 2026" in rendered.html
        assert "<li>Agency: Texas Secretary of State</li>" in rendered.html

    def test_tag_extends_the_stem(self, renderer):
        rendered = renderer.render(
            _artifact(), DownloadFormat.PRIMARY, generated_at=GENERATED_AT, tag="a1b2 c3",
        )
        assert rendered.name == "Apostille-Guide-2026-10-01-a1b2-c3.doc"

    def test_print_opens_dialog(self, renderer):
        rendered = renderer.render(_artifact(), DownloadFormat.PRINT, generated_at=GENERATED_AT)
        assert rendered.extension == "html"
        assert f"{PRINT_SCRIPT}</head>" in rendered.html

    def test_documents_have_no_title_block(self, renderer):
        artifact = _artifact(
            flow_type=FlowType.COVER_LETTER,
            title="Jane Doe - Visa Cover Letter",
            subtitle=None,
            sections=[ContentSection(body="**<u>Introduction</u>**\nDear Consul,")],
        )
        rendered = renderer.render(artifact, DownloadFormat.PRIMARY, generated_at=GENERATED_AT)
        assert "<h1>" not in rendered.html
        assert "<title>Jane Doe - Visa Cover Letter</title>" in rendered.html
        assert "<h3>Introduction</h3>" in rendered.html

    def test_title_is_escaped(self, renderer):
        artifact = _artifact(title="<b>Guide</b>")
        rendered = renderer.render(artifact, DownloadFormat.PRIMARY, generated_at=GENERATED_AT)
        assert "<b>Guide</b>" not in rendered.html
        assert "&lt;b&gt;Guide&lt;/b&gt;" in rendered.html
