import pytest
from app.core.config import Settings
from app.utils.file_utils import build_unique_name, new_token, sanitize_filename
from app.utils.validators import TypeValidator

@pytest.mark.parametrize("raw, expected", [
    ("photo.png", ("photo", ".png")),
    ("Report.Final.PDF", ("Report.Final", ".pdf")),
    ("../../etc/passwd.jpg", ("passwd", ".jpg")),
    ("C:\\Users\\me\\scan.JPEG", ("scan", ".jpeg")),
    ("my photo (1).png", ("myphoto1", ".png")),
    ("résumé.pdf", ("rsum", ".pdf")),
    ("日本語.pdf", ("", ".pdf")),
    ("写真 (2).JPG", ("2", ".jpg")),
    ("archive.tar.gz", ("archive.tar", ".gz")),
    ("notes.日本", ("notes", "")),
    (".pdf", (".pdf", "")),
    ("noextension", ("noextension", "")),
    ("", ("", "")),
])
def test_sanitize_filename(raw, expected):
    assert sanitize_filename(raw) == expected

def test_unique_name_never_empty():
    assert build_unique_name("photo", ".png", "tok") == "photo-tok.png"
    assert build_unique_name("", ".pdf", "tok") == "tok.pdf"

def test_tokens_are_distinct():
    assert len({new_token() for _ in range(100)}) == 100

@pytest.fixture
def validator():
    return TypeValidator(Settings().ALLOWED_FILE_TYPES)

@pytest.mark.parametrize("extension, media_type", [
    (".jpg", "image/jpeg"),
    (".jpeg", "image/jpeg"),
    (".png", "image/png"),
    (".pdf", "application/pdf"),
    (".PNG", "IMAGE/PNG"),
])
def test_accepted_pairs(validator, extension, media_type):
    assert validator.rejection_reason(extension, media_type) is None

def test_rejects_unknown_extension(validator):
    assert "extension" in validator.rejection_reason(".gif", "image/png")
    assert "extension" in validator.rejection_reason("", "image/png")

def test_rejects_unknown_media_type(validator):
    assert "type" in validator.rejection_reason(".png", "image/gif")

def test_rejects_mismatched_pair(validator):
    assert "does not match" in validator.rejection_reason(".pdf", "image/png")
    assert "does not match" in validator.rejection_reason(".png", "image/jpeg")
