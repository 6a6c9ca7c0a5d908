import logging

from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import IntegrityError

from database import SessionLocal
from services.attachments import (
    ATTACHMENT_COLUMNS,
    claim_base_names,
    clear_attachment,
    discard_files,
    governing_snapshot,
    relocate_attachments,
    store_attachment,
)
from services.files import DOCUMENT_TYPES, INVOICE_DOCUMENT, PAYMENT_DOCUMENT, StorageFault
from services.invoices import (
    REQUIRED_FIELDS,
    create_invoice,
    delete_invoice,
    extract_fields,
    get_invoice,
    list_invoices,
    missing_required,
    serialize_invoice,
    update_invoice,
)

logger = logging.getLogger(__name__)

invoices_bp = Blueprint("invoices", __name__)

UPLOAD_FIELDS = {
    "invoicePdf": INVOICE_DOCUMENT,
    "paymentPdf": PAYMENT_DOCUMENT,
}


def _request_payload():
    if request.files or request.form:
        return request.form.to_dict()
    return request.get_json(silent=True) or {}


def _read_uploads():
    """Returns ({document_type: bytes}, error)."""
    allowed = current_app.config["ALLOWED_MIME_TYPES"]
    uploads = {}
    for field, document_type in UPLOAD_FIELDS.items():
        file = request.files.get(field)
        if not file or not file.filename:
            continue
        if file.mimetype not in allowed:
            return None, f"{field} must be a PDF file"
        uploads[document_type] = file.read()
    return uploads, None


def _storage_root():
    return current_app.config["UPLOADS_FOLDER"]


@invoices_bp.route("/api/invoices", methods=["GET"])
def get_invoices():
    db = SessionLocal()
    try:
        return jsonify([serialize_invoice(i) for i in list_invoices(db)])
    finally:
        db.close()


@invoices_bp.route("/api/invoices/<int:invoice_id>", methods=["GET"])
def get_invoice_by_id(invoice_id):
    db = SessionLocal()
    try:
        invoice = get_invoice(db, invoice_id)
        if not invoice:
            return {"error": "Invoice not found"}, 404
        return jsonify(serialize_invoice(invoice))
    finally:
        db.close()


@invoices_bp.route("/api/invoices", methods=["POST"])
def create_invoice_route():
    payload = _request_payload()
    if missing_required(payload):
        return {"error": "Required fields: " + ", ".join(REQUIRED_FIELDS)}, 400

    uploads, error = _read_uploads()
    if error:
        return {"error": error}, 400

    try:
        fields = extract_fields(payload)
    except ValueError as e:
        return {"error": str(e)}, 400

    root = _storage_root()
    written = []
    db = SessionLocal()
    try:
        invoice = create_invoice(db, **fields)
        for document_type, content in uploads.items():
            store_attachment(invoice, document_type, content, root)
            written.append(getattr(invoice, ATTACHMENT_COLUMNS[document_type]))
        db.commit()
        logger.info("Created invoice %s (%s)", invoice.id, invoice.invoice_number)
        return jsonify(serialize_invoice(invoice)), 201
    except IntegrityError:
        db.rollback()
        discard_files(written, root)
        return {"error": "Invoice with this number already exists"}, 400
    except StorageFault:
        db.rollback()
        discard_files(written, root)
        raise
    finally:
        db.close()


@invoices_bp.route("/api/invoices/<int:invoice_id>", methods=["PUT"])
def update_invoice_route(invoice_id):
    payload = _request_payload()
    cleared = [k for k in REQUIRED_FIELDS if k in payload and not str(payload[k] or "").strip()]
    if cleared:
        return {"error": "Fields cannot be empty: " + ", ".join(cleared)}, 400

    uploads, error = _read_uploads()
    if error:
        return {"error": error}, 400

    try:
        fields = extract_fields(payload)
    except ValueError as e:
        return {"error": str(e)}, 400

    root = _storage_root()
    written = []
    replaced = []
    db = SessionLocal()
    try:
        invoice = get_invoice(db, invoice_id)
        if not invoice:
            return {"error": "Invoice not found"}, 404

        before = governing_snapshot(invoice)
        update_invoice(db, invoice, fields)
        for document_type, content in uploads.items():
            replaced.append(store_attachment(invoice, document_type, content, root))
            written.append(getattr(invoice, ATTACHMENT_COLUMNS[document_type]))
        relocate_attachments(invoice, before, root, skip=uploads.keys())
        db.commit()

        discard_files(replaced, root)
        superseded = claim_base_names(invoice, uploads.keys(), root)
        if superseded:
            db.commit()
            discard_files(superseded, root)
        body = serialize_invoice(invoice)
    except IntegrityError:
        db.rollback()
        discard_files(written, root)
        return {"error": "Invoice with this number already exists"}, 400
    except StorageFault:
        db.rollback()
        discard_files(written, root)
        raise
    finally:
        db.close()

    return jsonify(body)


@invoices_bp.route("/api/invoices/<int:invoice_id>", methods=["DELETE"])
def delete_invoice_route(invoice_id):
    db = SessionLocal()
    try:
        invoice = get_invoice(db, invoice_id)
        if not invoice:
            return {"error": "Invoice not found"}, 404
        paths = [getattr(invoice, column) for column in ATTACHMENT_COLUMNS.values()]
        delete_invoice(db, invoice)
        db.commit()
    finally:
        db.close()

    discard_files(paths, _storage_root())
    logger.info("Deleted invoice %s", invoice_id)
    return jsonify({"message": "Invoice deleted"})


@invoices_bp.route("/api/invoices/<int:invoice_id>/files/<document_type>", methods=["DELETE"])
def delete_attachment_route(invoice_id, document_type):
    if document_type not in DOCUMENT_TYPES:
        return {"error": f"Unknown document type: {document_type}"}, 404

    db = SessionLocal()
    try:
        invoice = get_invoice(db, invoice_id)
        if not invoice:
            return {"error": "Invoice not found"}, 404
        previous = clear_attachment(invoice, document_type)
        db.commit()
        body = serialize_invoice(invoice)
    finally:
        db.close()

    discard_files([previous], _storage_root())
    return jsonify(body)
