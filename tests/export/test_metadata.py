"""Tests for metadata sources and note templates."""

from datetime import datetime, timezone

import pytest

from common.models import Book, Highlight, Tag
from export.metadata import (
    DefaultMetadata,
    MetadataScriptError,
    ScriptMetadata,
    TemplateMetadata,
    load_metadata_source,
)
from export.templates import NoteTemplates, TemplateError, render_string

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)

BOOK = Book(id=3, title="Dune", category="books", author="Frank Herbert", tags=[Tag(1, "scifi")])
HIGHLIGHTS = [
    Highlight(id=1, text="Fear is the mind-killer.", location=10, book_id=3, updated=T0),
    Highlight(id=2, text="The spice must flow.", location=20, book_id=3, updated=T0),
]


class TestDefaultMetadata:
    def test_uses_book_fields(self):
        """Test that the default front matter is the serialized book."""
        metadata = DefaultMetadata().compute_metadata(BOOK, HIGHLIGHTS)

        assert metadata["title"] == "Dune"
        assert metadata["author"] == "Frank Herbert"
        assert metadata["tags"] == [{"id": 1, "name": "scifi"}]


class TestTemplateMetadata:
    """Tests for YAML template metadata."""

    def test_renders_yaml(self):
        """Test that the rendered template is parsed as YAML."""
        source = 'title: "{{ book.title }}"\ncount: {{ highlights | length }}\ntags: [{{ book.tags[0].name }}]\n'

        metadata = TemplateMetadata(source).compute_metadata(BOOK, HIGHLIGHTS)

        assert metadata == {"title": "Dune", "count": 2, "tags": ["scifi"]}

    def test_invalid_yaml(self):
        with pytest.raises(MetadataScriptError, match="valid YAML"):
            TemplateMetadata("a: [{{ book.title }}").compute_metadata(BOOK, HIGHLIGHTS)

    def test_may_return_non_mapping(self):
        """Test that the result is passed through as parsed."""
        assert TemplateMetadata("- {{ book.id }}").compute_metadata(BOOK, HIGHLIGHTS) == [3]


class TestScriptMetadata:
    """Tests for Python script metadata."""

    def test_calls_metadata_function(self, tmp_path):
        """Test that the script receives plain dicts."""
        script = tmp_path / "meta.py"
        script.write_text(
            "def metadata(book, highlights):\n"
            "    return {'title': book['title'].upper(), 'first': highlights[0]['text']}\n"
        )

        metadata = ScriptMetadata.from_file(script).compute_metadata(BOOK, HIGHLIGHTS)

        assert metadata == {"title": "DUNE", "first": "Fear is the mind-killer."}

    def test_missing_function(self, tmp_path):
        script = tmp_path / "meta.py"
        script.write_text("VALUE = 1\n")

        with pytest.raises(MetadataScriptError, match="does not define"):
            ScriptMetadata.from_file(script)

    def test_script_that_fails_to_load(self, tmp_path):
        script = tmp_path / "meta.py"
        script.write_text("raise RuntimeError('broken')\n")

        with pytest.raises(MetadataScriptError, match="Failed to load"):
            ScriptMetadata.from_file(script)

    def test_script_that_fails_to_run(self, tmp_path):
        """Test that errors inside metadata() name the book."""
        script = tmp_path / "meta.py"
        script.write_text("def metadata(book, highlights):\n    return 1 / 0\n")

        with pytest.raises(MetadataScriptError, match="failed for book 3"):
            ScriptMetadata.from_file(script).compute_metadata(BOOK, HIGHLIGHTS)


class TestLoadMetadataSource:
    """Tests for load_metadata_source."""

    def test_none_is_default(self):
        assert isinstance(load_metadata_source(None), DefaultMetadata)

    def test_python_file_is_script(self, tmp_path):
        script = tmp_path / "meta.py"
        script.write_text("def metadata(book, highlights):\n    return {}\n")

        assert isinstance(load_metadata_source(script), ScriptMetadata)

    def test_other_file_is_template(self, tmp_path):
        template = tmp_path / "meta.yaml.j2"
        template.write_text("title: {{ book.title }}\n")

        assert isinstance(load_metadata_source(template), TemplateMetadata)

    def test_missing_template_file(self, tmp_path):
        with pytest.raises(TemplateError):
            load_metadata_source(tmp_path / "missing.yaml")


class TestNoteTemplates:
    """Tests for Jinja2 note templates."""

    def test_render(self):
        templates = NoteTemplates("# {{ title }}", "> {{ highlight.text }}")

        assert templates.render_book({"title": "Dune"}) == "# Dune"
        assert templates.render_highlight({"highlight": {"text": "Quote"}}) == "> Quote"

    def test_invalid_syntax(self):
        with pytest.raises(TemplateError, match="Invalid template"):
            NoteTemplates("{% if %}", "")

    def test_undefined_variable(self):
        """Test that misspelled variables are errors rather than blanks."""
        templates = NoteTemplates("{{ titel }}", "")

        with pytest.raises(TemplateError, match="book template"):
            templates.render_book({"title": "Dune"})

    def test_from_files(self, tmp_path):
        (tmp_path / "book.md.j2").write_text("# {{ title }}\n")
        (tmp_path / "highlight.md.j2").write_text("- {{ highlight.text }}\n")

        templates = NoteTemplates.from_files(tmp_path / "book.md.j2", tmp_path / "highlight.md.j2")

        assert templates.render_book({"title": "Dune"}) == "# Dune"

    def test_missing_file(self, tmp_path):
        with pytest.raises(TemplateError, match="Failed to read template"):
            NoteTemplates.from_files(tmp_path / "missing.j2", tmp_path / "missing.j2")

    def test_render_string(self):
        assert render_string("{{ a }}-{{ b }}", {"a": 1, "b": 2}) == "1-2"
