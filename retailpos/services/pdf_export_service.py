"""Minimal text-only PDF writer used for report exports and receipts."""
from __future__ import annotations

from datetime import datetime, timezone

PAGE_WIDTH = 612
PAGE_HEIGHT = 792
LINE_HEIGHT = 14
TOP_MARGIN = 50
BOTTOM_MARGIN = 50


def _escape_pdf_text(value: str) -> str:
    escaped = value.replace("\\", "\\\\")
    escaped = escaped.replace("(", "\\(")
    escaped = escaped.replace(")", "\\)")
    return escaped


def _page_stream(lines: list[str], *, font_size: int) -> bytes:
    commands = ["BT", f"/F1 {font_size} Tf", f"50 {PAGE_HEIGHT - TOP_MARGIN} Td"]
    for index, line in enumerate(lines):
        if index:
            commands.append(f"0 -{LINE_HEIGHT} Td")
        commands.append(f"({_escape_pdf_text(line)}) Tj")
    commands.append("ET")
    # Helvetica only covers Latin-1.
    return "\n".join(commands).encode("latin-1", errors="replace")


def paginate(lines: list[str], lines_per_page: int) -> list[list[str]]:
    if lines_per_page < 1:
        raise ValueError("lines_per_page must be at least 1")
    pages = [lines[start : start + lines_per_page] for start in range(0, len(lines), lines_per_page)]
    return pages or [[]]


def build_text_pdf(
    *,
    title: str,
    lines: list[str],
    generated_at: datetime | None = None,
    font_size: int = 10,
) -> bytes:
    timestamp = generated_at or datetime.now(timezone.utc)
    lines_per_page = (PAGE_HEIGHT - TOP_MARGIN - BOTTOM_MARGIN) // LINE_HEIGHT
    header = [title, f"Generated: {timestamp.isoformat()}", ""]
    body = [line.rstrip() for line in lines]
    pages = paginate(header + body, lines_per_page)
    total_pages = len(pages)
    if total_pages > 1:
        pages = [page + ["", f"Page {number} of {total_pages}"] for number, page in enumerate(pages, start=1)]

    # 1: catalog, 2: page tree, 3: font, then one page and one content stream per page.
    page_object_ids = [4 + index * 2 for index in range(total_pages)]
    kids = " ".join(f"{object_id} 0 R" for object_id in page_object_ids)
    objects: list[bytes] = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {total_pages} >>".encode("ascii"),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for page_lines, page_object_id in zip(pages, page_object_ids):
        stream = _page_stream(page_lines, font_size=font_size)
        objects.append(
            (
                f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 {PAGE_WIDTH} {PAGE_HEIGHT}] "
                f"/Resources << /Font << /F1 3 0 R >> >> /Contents {page_object_id + 1} 0 R >>"
            ).encode("ascii")
        )
        objects.append(b"<< /Length %d >>\nstream\n%s\nendstream" % (len(stream), stream))

    pdf = b"%PDF-1.4\n%\xe2\xe3\xcf\xd3\n"
    offsets: list[int] = []
    for index, obj in enumerate(objects, start=1):
        offsets.append(len(pdf))
        pdf += f"{index} 0 obj\n".encode("ascii")
        pdf += obj + b"\nendobj\n"

    xref_offset = len(pdf)
    pdf += f"xref\n0 {len(objects) + 1}\n".encode("ascii")
    pdf += b"0000000000 65535 f \n"
    for offset in offsets:
        pdf += f"{offset:010d} 00000 n \n".encode("ascii")
    pdf += (
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\n"
        f"startxref\n{xref_offset}\n%%EOF"
    ).encode("ascii")
    return pdf
