"""
API Blueprint - conversion, analysis and archive endpoints

Every JSON response carries ``success``; failures add ``error``.
"""
import os
import tempfile
from typing import Any, Dict, Optional, Tuple

from flask import Blueprint, current_app, jsonify, request, send_file

from pdf2text.archive import EXPORT_FORMATS, ArchiveError, ArchiveStore
from pdf2text.models import ConvertedDocument, now_utc_iso
from pdf2text.services import openai_service, pdf_service

api_bp = Blueprint("api", __name__)


# ============ Helper Functions ============

def get_archive() -> ArchiveStore:
    return current_app.extensions["archive"]


def fail(error: str, status: int):
    return jsonify({"success": False, "error": error}), status


def payload_text(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    return value if isinstance(value, str) else ""


def truthy(s: str) -> bool:
    return (s or "").strip().lower() in {"1", "true", "yes", "on"}


def is_pdf_upload(file) -> bool:
    name = (getattr(file, "filename", "") or "").lower()
    mimetype = (getattr(file, "mimetype", "") or "").lower()
    return mimetype == "application/pdf" or name.endswith(".pdf")


def upload_dir() -> str:
    path = current_app.config.get("UPLOAD_DIR") or tempfile.gettempdir()
    os.makedirs(path, exist_ok=True)
    return path


# ============ Conversion ============

@api_bp.route("/convert-pdf", methods=["POST"])
def convert_pdf():
    file = request.files.get("pdf") or request.files.get("file")
    if not file or not file.filename:
        return fail("No PDF file uploaded", 400)
    if not is_pdf_upload(file):
        return fail("Only PDF files are allowed", 400)

    output_format = (request.form.get("outputFormat") or "markdown").strip().lower()
    if output_format not in pdf_service.OUTPUT_FORMATS:
        return fail("Invalid output format. Must be markdown or text", 400)
    include_metadata = truthy(request.form.get("includeMetadata") or "")

    ok, msg = pdf_service.upstage_ready()
    if not ok:
        return fail(msg, 503)

    fd, tmp_path = tempfile.mkstemp(prefix="upload-", suffix=".pdf", dir=upload_dir())
    try:
        with os.fdopen(fd, "wb") as f:
            file.save(f)

        page_count, err = pdf_service.inspect_pdf(tmp_path)
        if err:
            return fail(err, 400)

        result, err = pdf_service.convert_pdf(tmp_path, output_format, include_metadata)
        if err or result is None:
            current_app.logger.warning("Conversion of %s failed: %s", file.filename, err)
            return fail(err or "Conversion failed", 502)

        try:
            pdf_path, pdf_size = get_archive().store_pdf(tmp_path, file.filename)
        except ArchiveError:
            current_app.logger.exception("Could not store source PDF %s", file.filename)
            return fail("Failed to store the uploaded PDF", 500)
    finally:
        try:
            os.remove(tmp_path)
        except OSError:
            pass

    body: Dict[str, Any] = {
        "success": True,
        "content": result.content,
        "pdfPath": pdf_path,
        "pdfSize": pdf_size,
        "pages": page_count,
    }
    if include_metadata:
        body["metadata"] = result.metadata
    return jsonify(body), 200


# ============ Analysis ============

@api_bp.route("/convert-to-table", methods=["POST"])
def convert_to_table():
    payload = request.get_json(silent=True) or {}
    text = payload_text(payload, "text")
    if not text.strip():
        return fail("Text is required", 400)

    ok, msg = openai_service.client_ready()
    if not ok:
        return fail(msg, 503)

    table, err = openai_service.text_to_table(text)
    if err == openai_service.NOT_TABULAR_ERROR:
        return jsonify({"success": False, "error": err, "notTabular": True}), 422
    if err:
        current_app.logger.warning("Table conversion failed: %s", err)
        return fail(err, 502)
    return jsonify({"success": True, "table": table}), 200


@api_bp.route("/translate-text", methods=["POST"])
def translate_text():
    payload = request.get_json(silent=True) or {}
    text = payload_text(payload, "text")
    target_language = payload_text(payload, "targetLanguage").strip()
    if not text.strip():
        return fail("Text is required", 400)
    if not target_language:
        return fail("Target language is required", 400)

    ok, msg = openai_service.client_ready()
    if not ok:
        return fail(msg, 503)

    translated, err = openai_service.translate_text(text, target_language)
    if err:
        current_app.logger.warning("Translation failed: %s", err)
        return fail(err, 502)
    return jsonify({"success": True, "translatedText": translated}), 200


@api_bp.route("/extract-keywords-summary", methods=["POST"])
def extract_keywords_summary():
    payload = request.get_json(silent=True) or {}
    text = payload_text(payload, "text")
    if not text.strip():
        return fail("Text is required", 400)

    ok, msg = openai_service.client_ready()
    if not ok:
        return fail(msg, 503)

    result, err = openai_service.extract_keywords_summary(text)
    if err or result is None:
        current_app.logger.warning("Keyword extraction failed: %s", err)
        return fail(err or "Failed to extract keywords and summary", 502)
    return jsonify({"success": True, "keywords": result["keywords"], "summary": result["summary"]}), 200


# ============ Archive ============

def _record_from_payload(payload: Dict[str, Any], archive: ArchiveStore) -> Tuple[Optional[ConvertedDocument], str]:
    filename = payload_text(payload, "originalFilename").strip()
    text = payload_text(payload, "convertedText")
    if not filename or not text:
        return None, "Original filename and converted text are required"

    keywords = payload.get("keywords") or []
    if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
        return None, "Keywords must be a list of strings"
    summary = payload.get("summary") or ""
    if not isinstance(summary, str):
        return None, "Summary must be a string"
    pdf_size = payload.get("pdfSize")
    if pdf_size is not None and (not isinstance(pdf_size, int) or isinstance(pdf_size, bool) or pdf_size < 0):
        return None, "pdfSize must be a non-negative integer"

    pdf_path = payload_text(payload, "pdfPath").strip()
    if pdf_path and not archive.has_stored_pdf(pdf_path):
        current_app.logger.warning("Ignoring pdfPath with no stored PDF: %s", pdf_path)
        pdf_path = ""

    record = ConvertedDocument(
        original_filename=filename,
        converted_text=text,
        keywords=keywords,
        summary=summary,
        base_id=payload_text(payload, "baseId").strip(),
        pdf_path=pdf_path or None,
        pdf_size=(pdf_size or None) if pdf_path else None,
    )
    return record, ""


@api_bp.route("/save-converted-file", methods=["POST"])
def save_converted_file():
    payload = request.get_json(silent=True) or {}
    archive = get_archive()
    record, err = _record_from_payload(payload, archive)
    if err:
        return fail(err, 400)

    try:
        saved = archive.save(record)
    except ArchiveError:
        current_app.logger.exception("Failed to save %s to archive", record.original_filename)
        return fail("Failed to save converted file", 500)

    return jsonify({
        "success": True,
        "fileId": saved.id,
        "baseId": saved.base_id,
        "revision": saved.revision,
        "message": "File saved to archive successfully",
    }), 200


@api_bp.route("/archive", methods=["GET"])
def list_archive():
    try:
        files = get_archive().list()
    except ArchiveError:
        current_app.logger.exception("Failed to read archive index")
        return fail("Failed to retrieve archive", 500)
    return jsonify({"success": True, "files": files}), 200


@api_bp.route("/archive/<file_id>", methods=["GET"])
def get_archived_file(file_id: str):
    try:
        record = get_archive().get(file_id)
    except ArchiveError:
        current_app.logger.exception("Failed to read archived file %s", file_id)
        return fail("Failed to retrieve archived file", 500)
    if record is None:
        return fail("File not found", 404)
    return jsonify({"success": True, "file": record.to_dict()}), 200


@api_bp.route("/archive/<file_id>", methods=["DELETE"])
def delete_archived_file(file_id: str):
    try:
        get_archive().delete(file_id)
    except ArchiveError:
        current_app.logger.exception("Failed to delete archived file %s", file_id)
        return fail("Failed to delete archived file", 500)
    return jsonify({"success": True, "message": "File deleted from archive successfully"}), 200


@api_bp.route("/archive/<file_id>/pdf", methods=["GET"])
def get_archived_pdf(file_id: str):
    archive = get_archive()
    try:
        record = archive.get(file_id)
        if record is None:
            return fail("File not found", 404)
        pdf = archive.pdf_path_for(file_id)
    except ArchiveError:
        current_app.logger.exception("Failed to serve PDF for %s", file_id)
        return fail("Failed to serve PDF file", 500)
    if not pdf:
        return fail("PDF file not found", 404)
    return send_file(pdf, mimetype="application/pdf", as_attachment=False, download_name=record.original_filename)


@api_bp.route("/archive/bulk-download", methods=["POST"])
def bulk_download():
    payload = request.get_json(silent=True) or {}
    file_ids = payload.get("fileIds")
    fmt = payload.get("format")
    if not isinstance(file_ids, list) or not file_ids:
        return fail("File IDs array is required", 400)
    if fmt not in EXPORT_FORMATS:
        return fail("Invalid format. Must be txt, json, or csv", 400)

    try:
        export = get_archive().bulk_export([str(i) for i in file_ids], fmt)
    except ArchiveError:
        current_app.logger.exception("Bulk download failed")
        return fail("Failed to create bulk download", 500)
    if export is None:
        return fail("No valid files found", 404)

    content, mimetype, filename = export
    response = current_app.response_class(content, mimetype=mimetype)
    response.headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response


# ============ Health ============

@api_bp.route("/health", methods=["GET"])
def health():
    upstage_ok, upstage_msg = pdf_service.upstage_ready()
    openai_ok, openai_msg = openai_service.client_ready()
    return jsonify({
        "status": "OK",
        "service": "PDF to Markdown Converter",
        "version": current_app.config.get("APP_VERSION", "1.0.0"),
        "timestamp": now_utc_iso(),
        "upstage_ready": upstage_ok,
        "upstage_message": upstage_msg,
        "openai_ready": openai_ok,
        "openai_message": openai_msg,
        "model": openai_service.model_name(),
    }), 200


@api_bp.route("/", methods=["GET"])
def index():
    return "PDF to Markdown Converter is running!", 200
