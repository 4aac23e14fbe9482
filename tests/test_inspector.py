import math
import os

import pytest

from conftest import make_pdf
from printbot.errors import ValidationError
from printbot.inspector import FileInspector, extension_for
from printbot.models import Attachment


@pytest.fixture
def inspector(settings):
    return FileInspector(settings)


def test_extension_from_mimetype_then_filename():
    assert extension_for(Attachment(mimetype="application/pdf", data=b"")) == "pdf"
    assert extension_for(Attachment(mimetype="image/jpeg; q=1", data=b"")) == "jpeg"
    assert extension_for(Attachment(mimetype="", filename="Report.DOCX", data=b"")) == "docx"


def test_rejects_unsupported_format(inspector):
    with pytest.raises(ValidationError) as exc:
        inspector.validate(Attachment(mimetype="application/zip", filename="a.zip", data=b"PK"), "s")
    assert "not supported" in exc.value.user_message


def test_rejects_oversized_file(inspector, settings):
    data = b"x" * (settings.max_file_size + 1)
    with pytest.raises(ValidationError) as exc:
        inspector.validate(Attachment(mimetype="text/plain", data=data), "s")
    assert "too large" in exc.value.user_message


def test_file_exactly_at_size_limit_is_rejected(inspector, settings):
    with pytest.raises(ValidationError):
        inspector.validate(Attachment(mimetype="text/plain", data=b"x" * settings.max_file_size), "s")
    assert inspector.validate(Attachment(mimetype="text/plain", data=b"x" * (settings.max_file_size - 1)), "s") == "txt"


def test_store_gives_each_upload_its_own_path(inspector):
    attachment = Attachment(mimetype="text/plain", filename="n.txt", data=b"hi")
    first = inspector.store(attachment, "62", "txt", now=12.5)
    second = inspector.store(attachment, "62", "txt", now=12.5)
    assert first.file_path != second.file_path
    assert os.path.exists(first.file_path) and os.path.exists(second.file_path)


def test_security_scan_only_when_enabled(settings):
    attachment = Attachment(mimetype="text/plain", data=b"<script>alert(1)</script>")
    with pytest.raises(ValidationError):
        FileInspector(settings).validate(attachment, "s")

    relaxed = settings.model_copy(update={"enable_file_validation": False})
    assert FileInspector(relaxed).validate(attachment, "s") == "txt"


def test_store_writes_file_under_temp_dir(inspector, settings):
    meta = inspector.store(Attachment(mimetype="text/plain", filename="n.txt", data=b"hi"), "62 81", "txt", now=12.5)
    assert meta.file_name.startswith("print_62_81_12500_")
    assert meta.file_name.endswith(".txt")
    assert meta.original_name == "n.txt"
    assert os.path.dirname(meta.file_path) == settings.temp_dir
    with open(meta.file_path, "rb") as f:
        assert f.read() == b"hi"


def test_analyze_pdf_counts_pages(inspector, tmp_path):
    path = tmp_path / "doc.pdf"
    path.write_bytes(make_pdf(3))
    analysis = inspector.analyze(str(path), "pdf")
    assert analysis.page_count == 3
    assert not analysis.has_color


def test_analyze_estimates_other_formats(inspector, tmp_path):
    image = tmp_path / "a.png"
    image.write_bytes(b"\x89PNG")
    assert inspector.analyze(str(image), "png").has_color

    word = tmp_path / "a.docx"
    word.write_bytes(b"x" * 120_000)
    assert inspector.analyze(str(word), "docx").page_count == math.ceil(120_000 / 50_000)

    text = tmp_path / "a.txt"
    text.write_text("line\n" * 130)
    assert inspector.analyze(str(text), "txt").page_count == 3


def test_analyze_broken_pdf_falls_back_to_one_page(inspector, tmp_path):
    path = tmp_path / "broken.pdf"
    path.write_bytes(b"not a pdf")
    assert inspector.analyze(str(path), "pdf").page_count == 1
