from datetime import date, datetime
from urllib.parse import quote

from models import Invoice

FILES_URL_PREFIX = "/api/files/"

# request field -> column
INVOICE_FIELDS = {
    "invoiceDate": "invoice_date",
    "organization": "organization",
    "invoiceNumber": "invoice_number",
    "amount": "amount",
    "paymentDate": "payment_date",
    "responsible": "responsible",
    "note": "note",
}
DATE_FIELDS = ("invoice_date", "payment_date")
REQUIRED_FIELDS = ("invoiceDate", "organization", "invoiceNumber", "amount")


def parse_date(value):
    """Accepts 'YYYY-MM-DD' (or a full ISO timestamp); empty values mean no date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValueError(f"invalid date: {value}")


def format_date(value):
    if not value:
        return None
    return value.isoformat()


def file_url(stored_path):
    """'uploads/2024/Январь/x.pdf' -> '/api/files/2024/%D0%AF.../x.pdf'"""
    if not stored_path:
        return None
    _, _, relative = stored_path.partition("/")
    return FILES_URL_PREFIX + quote(relative)


def serialize_invoice(invoice):
    return {
        "id": invoice.id,
        "invoiceDate": format_date(invoice.invoice_date),
        "organization": invoice.organization,
        "invoiceNumber": invoice.invoice_number,
        "amount": invoice.amount,
        "paymentDate": format_date(invoice.payment_date),
        "responsible": invoice.responsible,
        "note": invoice.note,
        "invoicePdfPath": invoice.invoice_pdf_path,
        "paymentPdfPath": invoice.payment_pdf_path,
        "invoicePdfUrl": file_url(invoice.invoice_pdf_path),
        "paymentPdfUrl": file_url(invoice.payment_pdf_path),
        "createdAt": invoice.created_at.isoformat() if invoice.created_at else None,
        "updatedAt": invoice.updated_at.isoformat() if invoice.updated_at else None,
    }


def extract_fields(payload):
    """Maps request keys to column values, parsing dates. Unknown keys are ignored."""
    fields = {}
    for key, column in INVOICE_FIELDS.items():
        if key not in payload:
            continue
        value = payload[key]
        if column in DATE_FIELDS:
            value = parse_date(value)
        elif value is not None:
            value = str(value).strip()
        fields[column] = value
    return fields


def missing_required(payload):
    return [key for key in REQUIRED_FIELDS if not str(payload.get(key) or "").strip()]


def list_invoices(db):
    return db.query(Invoice).order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).all()


def get_invoice(db, invoice_id):
    return db.query(Invoice).filter(Invoice.id == invoice_id).first()


def create_invoice(db, **fields):
    invoice = Invoice(**fields)
    db.add(invoice)
    db.flush()
    return invoice


def update_invoice(db, invoice, fields):
    for column, value in fields.items():
        setattr(invoice, column, value)
    db.flush()
    return invoice


def delete_invoice(db, invoice):
    db.delete(invoice)
    db.flush()
