"""
Archive of converted documents.

Layout under the archive root:

    index.json          newest-first list of record summaries
    <record id>.json    one full record per saved revision
    pdfs/               stored source PDFs, <generated id>_<filename>

All index read-modify-write goes through ArchiveStore under a single lock.
Files are replaced atomically, and a save writes the record before the index
so the index never points at a missing record.
"""
from __future__ import annotations

import csv
import io
import json
import logging
import os
import re
import shutil
import tempfile
import threading
import time
import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple

from werkzeug.utils import secure_filename

from pdf2text.models import ConvertedDocument, now_utc_iso, parse_utc_iso

logger = logging.getLogger(__name__)

INDEX_FILE = "index.json"
DEFAULT_CAPACITY = 100
ORPHAN_PDF_AGE = 3600  # seconds an unsaved upload survives reconcile
EXPORT_FORMATS = ("txt", "json", "csv")

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class ArchiveError(Exception):
    """Raised when the archive cannot be read or written."""


def new_file_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}"


def _write_json(path: str, obj: Any) -> None:
    directory = os.path.dirname(path)
    fd, tmp = tempfile.mkstemp(prefix=".", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(obj, f, ensure_ascii=False, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except OSError as e:
        try:
            os.remove(tmp)
        except OSError:
            pass
        raise ArchiveError(f"Could not write {os.path.basename(path)}: {e}") from e


def _format_date(iso: str, fmt: str) -> str:
    dt = parse_utc_iso(iso)
    return dt.strftime(fmt) if dt else "Unknown"


class ArchiveStore:
    """File-backed archive with per-lineage revisions and a bounded index."""

    def __init__(self, root: str, capacity: int = DEFAULT_CAPACITY, pdf_dir: Optional[str] = None,
                 orphan_pdf_age: int = ORPHAN_PDF_AGE):
        self.root = os.path.abspath(root)
        self.pdf_dir = os.path.abspath(pdf_dir or os.path.join(self.root, "pdfs"))
        self.capacity = max(1, int(capacity))
        self.orphan_pdf_age = max(0, int(orphan_pdf_age))
        self.index_path = os.path.join(self.root, INDEX_FILE)
        self._lock = threading.Lock()
        try:
            os.makedirs(self.root, exist_ok=True)
            os.makedirs(self.pdf_dir, exist_ok=True)
        except OSError as e:
            raise ArchiveError(f"Could not create archive directory: {e}") from e
        if not os.path.exists(self.index_path):
            _write_json(self.index_path, [])

    # ============ Paths ============

    def _record_path(self, file_id: str) -> Optional[str]:
        if not file_id or not _SAFE_ID.match(file_id):
            return None
        name = f"{file_id}.json"
        if name == INDEX_FILE:
            return None
        return os.path.join(self.root, name)

    def _resolve_pdf(self, pdf_path: str) -> Optional[str]:
        full = os.path.realpath(os.path.join(self.root, pdf_path))
        pdf_root = os.path.realpath(self.pdf_dir)
        if os.path.commonpath([full, pdf_root]) != pdf_root or full == pdf_root:
            return None
        return full

    # ============ Index ============

    def _load_index(self) -> List[Dict[str, Any]]:
        try:
            with open(self.index_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            raise ArchiveError(f"Could not read archive index: {e}") from e
        if not isinstance(data, list):
            raise ArchiveError("Archive index is not a list")
        return data

    def _read_record(self, path: str) -> Optional[ConvertedDocument]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            raise ArchiveError(f"Could not read record {os.path.basename(path)}: {e}") from e
        if not isinstance(data, dict):
            raise ArchiveError(f"Record {os.path.basename(path)} is not an object")
        return ConvertedDocument.from_dict(data)

    def _pdf_in_use(self, pdf_path: str, index: Iterable[Dict[str, Any]]) -> bool:
        for entry in index:
            if not entry.get("hasPdf"):
                continue
            path = self._record_path(str(entry.get("id") or ""))
            try:
                other = self._read_record(path) if path else None
            except ArchiveError:
                # unreadable record: keep the PDF
                return True
            if other and other.pdf_path == pdf_path:
                return True
        return False

    def _remove_record(self, file_id: str, remaining: List[Dict[str, Any]]) -> None:
        """Delete a record file and its PDF unless another record still uses it."""
        path = self._record_path(file_id)
        if not path:
            return
        try:
            record = self._read_record(path)
        except ArchiveError:
            record = None
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise ArchiveError(f"Could not delete record {file_id}: {e}") from e

        if record and record.pdf_path and not self._pdf_in_use(record.pdf_path, remaining):
            pdf = self._resolve_pdf(record.pdf_path)
            if pdf:
                try:
                    os.remove(pdf)
                except FileNotFoundError:
                    pass
                except OSError as e:
                    logger.warning("Could not delete stored PDF %s: %s", pdf, e)

    # ============ Operations ============

    def save(self, record: ConvertedDocument) -> ConvertedDocument:
        """Persist a new revision and return it with id, baseId and revision set.

        A record without base_id starts a new lineage at revision 1. With a
        base_id, the revision is one past the highest revision still indexed
        for that lineage.
        """
        with self._lock:
            index = self._load_index()
            known_ids = {e.get("id") for e in index}

            if not record.id:
                record.id = new_file_id()
                while record.id in known_ids or os.path.exists(self._record_path(record.id)):
                    record.id = new_file_id()
            else:
                path = self._record_path(record.id)
                if not path:
                    raise ArchiveError(f"Invalid record id: {record.id!r}")
                if record.id in known_ids or os.path.exists(path):
                    raise ArchiveError(f"Record {record.id} already exists")

            if record.base_id:
                record.revision = max(
                    (int(e.get("revision") or 0) for e in index if e.get("baseId") == record.base_id),
                    default=0,
                ) + 1
            else:
                record.base_id = record.id
                record.revision = 1
            record.converted_at = now_utc_iso()

            record_path = self._record_path(record.id)
            _write_json(record_path, record.to_dict())

            index.insert(0, record.summary_dict())
            evicted: List[Dict[str, Any]] = []
            while len(index) > self.capacity:
                evicted.append(index.pop())

            try:
                _write_json(self.index_path, index)
            except ArchiveError:
                try:
                    os.remove(record_path)
                except OSError:
                    pass
                raise

            for entry in evicted:
                logger.info("Archive full, evicting %s (%s rev %s)", entry.get("id"), entry.get("originalFilename"), entry.get("revision"))
                self._remove_record(str(entry.get("id") or ""), index)

        logger.info("Archived %s as %s (base %s, rev %d)", record.original_filename, record.id, record.base_id, record.revision)
        return record

    def list(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(e) for e in self._load_index()]

    def get(self, file_id: str) -> Optional[ConvertedDocument]:
        path = self._record_path(file_id)
        if not path:
            return None
        return self._read_record(path)

    def delete(self, file_id: str) -> bool:
        """Remove a record and its index entry. Returns True if it was indexed."""
        path = self._record_path(file_id)
        if not path:
            return False
        with self._lock:
            index = self._load_index()
            remaining = [e for e in index if e.get("id") != file_id]
            removed = len(remaining) != len(index)
            if removed:
                _write_json(self.index_path, remaining)
            self._remove_record(file_id, remaining)
        if removed:
            logger.info("Deleted archive record %s", file_id)
        return removed

    def reconcile(self) -> Tuple[int, int]:
        """Repair divergence left by an interrupted write.

        Drops index entries whose record file is gone and deletes record files
        (and stale temp files) the index does not know about. Stored PDFs no
        record references are deleted once older than orphan_pdf_age. Returns
        (entries dropped, files removed).
        """
        with self._lock:
            index = self._load_index()
            kept = []
            for entry in index:
                path = self._record_path(str(entry.get("id") or ""))
                if path and os.path.exists(path):
                    kept.append(entry)
            if len(kept) != len(index):
                _write_json(self.index_path, kept)
            kept_ids = {e.get("id") for e in kept}

            removed = 0
            for name in os.listdir(self.root):
                path = os.path.join(self.root, name)
                if not os.path.isfile(path) or name == INDEX_FILE:
                    continue
                stale_tmp = name.startswith(".") and name.endswith(".tmp")
                orphan = name.endswith(".json") and name[:-5] not in kept_ids
                if stale_tmp or orphan:
                    try:
                        os.remove(path)
                        removed += 1
                    except OSError as e:
                        logger.warning("Could not remove %s during reconcile: %s", path, e)

            removed += self._sweep_pdfs(kept)

        dropped = len(index) - len(kept)
        if dropped or removed:
            logger.warning("Archive reconciled: %d index entries dropped, %d files removed", dropped, removed)
        return dropped, removed

    # ============ PDFs ============

    def _sweep_pdfs(self, index: List[Dict[str, Any]]) -> int:
        """Delete unreferenced PDFs older than orphan_pdf_age. Caller holds the lock."""
        referenced = set()
        for entry in index:
            if not entry.get("hasPdf"):
                continue
            path = self._record_path(str(entry.get("id") or ""))
            try:
                record = self._read_record(path) if path else None
            except ArchiveError as e:
                logger.warning("Skipping PDF sweep: %s", e)
                return 0
            if record and record.pdf_path:
                pdf = self._resolve_pdf(record.pdf_path)
                if pdf:
                    referenced.add(pdf)

        cutoff = time.time() - self.orphan_pdf_age
        removed = 0
        for name in os.listdir(self.pdf_dir):
            path = os.path.realpath(os.path.join(self.pdf_dir, name))
            if path in referenced or not os.path.isfile(path):
                continue
            try:
                if os.path.getmtime(path) > cutoff:
                    continue
                os.remove(path)
                removed += 1
            except OSError as e:
                logger.warning("Could not remove unreferenced PDF %s: %s", path, e)
        return removed

    def has_stored_pdf(self, pdf_path: str) -> bool:
        """True when pdf_path names an existing file inside the PDF directory."""
        pdf = self._resolve_pdf(pdf_path) if pdf_path else None
        return bool(pdf and os.path.isfile(pdf))

    def store_pdf(self, src_path: str, original_filename: str) -> Tuple[str, int]:
        """Copy a source PDF into the archive. Returns (pdf_path, size)."""
        name = secure_filename(original_filename or "") or "document.pdf"
        dest = os.path.join(self.pdf_dir, f"{new_file_id()}_{name}")
        try:
            shutil.copyfile(src_path, dest)
            size = os.path.getsize(dest)
        except OSError as e:
            raise ArchiveError(f"Could not store PDF: {e}") from e
        return os.path.relpath(dest, self.root), size

    def pdf_path_for(self, file_id: str) -> Optional[str]:
        record = self.get(file_id)
        if not record or not record.pdf_path:
            return None
        pdf = self._resolve_pdf(record.pdf_path)
        if pdf and os.path.isfile(pdf):
            return pdf
        return None

    # ============ Export ============

    def bulk_export(self, file_ids: Iterable[str], fmt: str) -> Optional[Tuple[str, str, str]]:
        """Render the records that exist among file_ids.

        Returns (content, mimetype, download filename), or None when none of
        the ids resolve.
        """
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"Invalid format {fmt!r}. Must be txt, json, or csv")

        records: List[ConvertedDocument] = []
        for file_id in file_ids:
            record = self.get(str(file_id))
            if record:
                records.append(record)
        if not records:
            return None

        filename = f"bulk-download-{int(time.time() * 1000)}.{fmt}"
        if fmt == "json":
            return json.dumps([r.to_dict() for r in records], ensure_ascii=False, indent=2), "application/json", filename
        if fmt == "csv":
            return render_csv(records), "text/csv", filename
        return render_txt(records), "text/plain", filename


def render_csv(records: List[ConvertedDocument]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    writer.writerow(["Filename", "Revision", "Content", "Keywords", "Summary", "Date"])
    for r in records:
        writer.writerow([
            r.original_filename or "Unknown",
            r.revision or 1,
            r.converted_text or "",
            "; ".join(r.keywords),
            r.summary or "",
            _format_date(r.converted_at, "%Y-%m-%d"),
        ])
    return buf.getvalue()


def render_txt(records: List[ConvertedDocument]) -> str:
    rule = "=" * 50
    parts: List[str] = []
    for r in records:
        body = f"File: {r.original_filename or 'Unknown'} (Revision {r.revision or 1})\n"
        body += f"Date: {_format_date(r.converted_at, '%Y-%m-%d %H:%M:%S UTC')}\n"
        body += f"{rule}\n\n"
        body += r.converted_text or ""
        if r.keywords:
            body += f"\n\n{rule}\nKEYWORDS:\n" + ", ".join(r.keywords)
        if r.summary:
            body += f"\n\n{rule}\nSUMMARY:\n" + r.summary
        parts.append(body)
    return ("\n\n" + "=" * 80 + "\n\n").join(parts)
