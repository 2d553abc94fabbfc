"""
Shared test setup.

Configuration is read from the environment when docintel.core.config is
first imported, so the environment is pinned here before any test module
imports the package: local analysis only, no remote keys and a throwaway
data directory.
"""
import os
import tempfile

_DATA_DIR = tempfile.mkdtemp(prefix="docintel-tests-")

os.environ["AI_PROVIDER"] = "local"
os.environ["GEMINI_API_KEY"] = ""
os.environ["OPENROUTER_API_KEY"] = ""
os.environ["DATA_DIR"] = _DATA_DIR
os.environ["BLOB_DIR"] = os.path.join(_DATA_DIR, "blobs")
os.environ["STORAGE_DIR"] = os.path.join(_DATA_DIR, "storage")
os.environ["LOG_TO_FILE"] = "false"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import io  # noqa: E402

import pytest  # noqa: E402


def make_pdf(pages):
    """
    Build a minimal, valid PDF with one text line per page.

    Offsets in the xref table are computed from the actual bytes so pypdf
    can parse the file without repairs.
    """
    objects = []
    page_ids = []
    font_id = 3
    next_id = 4
    page_objects = []
    for text in pages:
        content_id, page_id = next_id, next_id + 1
        next_id += 2
        page_ids.append(page_id)
        escaped = text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
        stream = f"BT /F1 12 Tf 72 720 Td ({escaped}) Tj ET".encode("latin-1")
        page_objects.append((content_id, b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream"))
        page_objects.append((page_id, (
            f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            f"/Resources << /Font << /F1 {font_id} 0 R >> >> /Contents {content_id} 0 R >>"
        ).encode("latin-1")))

    kids = " ".join(f"{pid} 0 R" for pid in page_ids)
    objects.append((1, b"<< /Type /Catalog /Pages 2 0 R >>"))
    objects.append((2, f"<< /Type /Pages /Kids [{kids}] /Count {len(page_ids)} >>".encode("latin-1")))
    objects.append((font_id, b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>"))
    objects.extend(page_objects)
    objects.sort(key=lambda item: item[0])

    out = io.BytesIO()
    out.write(b"%PDF-1.4\n")
    offsets = {}
    for obj_id, body in objects:
        offsets[obj_id] = out.tell()
        out.write(f"{obj_id} 0 obj\n".encode("latin-1"))
        out.write(body)
        out.write(b"\nendobj\n")

    xref_offset = out.tell()
    size = len(objects) + 1
    out.write(f"xref\n0 {size}\n".encode("latin-1"))
    out.write(b"0000000000 65535 f \n")
    for obj_id in range(1, size):
        out.write(f"{offsets[obj_id]:010d} 00000 n \n".encode("latin-1"))
    out.write(f"trailer\n<< /Size {size} /Root 1 0 R >>\nstartxref\n{xref_offset}\n%%EOF\n".encode("latin-1"))
    return out.getvalue()


def make_docx(paragraphs):
    from docx import Document

    document = Document()
    for paragraph in paragraphs:
        document.add_paragraph(paragraph)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def pdf_factory():
    return make_pdf


@pytest.fixture
def docx_factory():
    return make_docx
