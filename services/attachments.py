import logging

from services.files import (
    INVOICE_DOCUMENT,
    PAYMENT_DOCUMENT,
    StorageFault,
    claim_base_name,
    delete_stored_file,
    move_file_to_new_structure,
    save_file_with_structure,
)

logger = logging.getLogger(__name__)

ATTACHMENT_COLUMNS = {
    INVOICE_DOCUMENT: "invoice_pdf_path",
    PAYMENT_DOCUMENT: "payment_pdf_path",
}


def governing_date(invoice, document_type):
    # Payment documents without a payment date are filed under the invoice date.
    if document_type == PAYMENT_DOCUMENT:
        return invoice.payment_date or invoice.invoice_date
    return invoice.invoice_date


def governing_snapshot(invoice):
    """(date, organization) per document type, taken before an update."""
    return {
        document_type: (governing_date(invoice, document_type), invoice.organization)
        for document_type in ATTACHMENT_COLUMNS
    }


def discard_files(paths, root):
    """Best-effort removal; failures are logged and skipped."""
    for stored_path in paths:
        if not stored_path:
            continue
        try:
            delete_stored_file(stored_path, root)
        except (StorageFault, ValueError):
            logger.exception("Could not remove stored file %s", stored_path)


def store_attachment(invoice, document_type, content, root):
    """
    Saves an uploaded document for `invoice` and points the record at it.
    Returns the path of the file it replaced, if any, so the caller can
    remove it once the record is committed.
    """
    column = ATTACHMENT_COLUMNS[document_type]
    previous = getattr(invoice, column)
    stored = save_file_with_structure(
        content,
        governing_date(invoice, document_type),
        invoice.organization,
        document_type,
        root,
    )
    setattr(invoice, column, stored)
    return previous


def relocate_attachments(invoice, before, root, skip=()):
    """Moves stored files whose governing date or organization changed."""
    for document_type, column in ATTACHMENT_COLUMNS.items():
        current = getattr(invoice, column)
        if document_type in skip or not current:
            continue
        after = (governing_date(invoice, document_type), invoice.organization)
        if after == before[document_type]:
            continue
        try:
            new_path = move_file_to_new_structure(current, after[0], after[1], document_type, root)
        except StorageFault:
            # Keep what is on disk now; moves already done above stay recorded.
            logger.exception("Could not relocate %s document %s", document_type, current)
            continue
        setattr(invoice, column, new_path)


def claim_base_names(invoice, document_types, root):
    """
    Points freshly stored documents at their plain name once the file they
    replaced is gone. Returns the suffixed paths, to be removed after commit.
    """
    superseded = []
    for document_type in document_types:
        column = ATTACHMENT_COLUMNS[document_type]
        current = getattr(invoice, column)
        plain = claim_base_name(current, root)
        if plain:
            setattr(invoice, column, plain)
            superseded.append(current)
    return superseded


def clear_attachment(invoice, document_type):
    column = ATTACHMENT_COLUMNS[document_type]
    previous = getattr(invoice, column)
    setattr(invoice, column, None)
    return previous
