import logging
import os
import re
from datetime import date, datetime

from config import UPLOADS_FOLDER

logger = logging.getLogger(__name__)

INVOICE_DOCUMENT = "invoice"
PAYMENT_DOCUMENT = "payment"
DOCUMENT_TYPES = (INVOICE_DOCUMENT, PAYMENT_DOCUMENT)

RUSSIAN_MONTHS = (
    "Январь",
    "Февраль",
    "Март",
    "Апрель",
    "Май",
    "Июнь",
    "Июль",
    "Август",
    "Сентябрь",
    "Октябрь",
    "Ноябрь",
    "Декабрь",
)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Zа-яА-ЯёЁ0-9\s]")
_WHITESPACE = re.compile(r"\s+")
_DISAMBIGUATED = re.compile(r"(?P<base>.+) \(\d+\)(?P<ext>\.[^.]+)")


class StorageFault(Exception):
    """Filesystem failure other than "already exists" / "does not exist"."""


def _coerce_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def sanitize_file_name(name: str) -> str:
    if not name:
        return ""
    cleaned = _UNSAFE_CHARS.sub("", name)
    return _WHITESPACE.sub(" ", cleaned).strip()


def get_russian_month_name(value) -> str:
    return RUSSIAN_MONTHS[_coerce_date(value).month - 1]


def format_file_date(value) -> str:
    return _coerce_date(value).strftime("%d.%m.%Y")


def build_base_name(value, organization: str, file_type: str) -> str:
    return f"{format_file_date(value)} {sanitize_file_name(organization)} {file_type}"


def date_folder_path(value, root: str = UPLOADS_FOLDER) -> str:
    d = _coerce_date(value)
    return os.path.join(root, str(d.year), get_russian_month_name(d))


def create_date_folder_structure(value, root: str = UPLOADS_FOLDER) -> str:
    """
    Ensures <root>/<year>/<month> exists and returns it.
    A folder created concurrently by another request is fine.
    """
    month_path = date_folder_path(value, root)
    try:
        os.makedirs(month_path, exist_ok=True)
    except FileExistsError:
        if not os.path.isdir(month_path):
            raise StorageFault(f"{month_path} exists and is not a directory")
    except OSError as exc:
        raise StorageFault(f"Could not create folder {month_path}") from exc
    return month_path


def generate_unique_file_name(base_name: str, directory: str, extension: str = "pdf"):
    """
    Returns (file_name, file_path) for the first free name out of
    "<base>.<ext>", "<base> (2).<ext>", "<base> (3).<ext>", ...

    The existence probe is not atomic: another writer can take the name
    between this check and the write. save_file_with_structure closes that
    gap with an exclusive create.
    """
    file_name = f"{base_name}.{extension}"
    file_path = os.path.join(directory, file_name)
    counter = 1
    while os.path.lexists(file_path):
        counter += 1
        file_name = f"{base_name} ({counter}).{extension}"
        file_path = os.path.join(directory, file_name)
    return file_name, file_path


def _storage_base(root: str) -> str:
    return os.path.dirname(os.path.abspath(root))


def to_stored_path(file_path: str, root: str = UPLOADS_FOLDER) -> str:
    relative = os.path.relpath(os.path.abspath(file_path), _storage_base(root))
    return relative.replace(os.sep, "/")


def resolve_stored_path(stored_path: str, root: str = UPLOADS_FOLDER) -> str:
    root_abs = os.path.abspath(root)
    full_path = os.path.abspath(os.path.join(_storage_base(root), stored_path))
    if os.path.commonpath([root_abs, full_path]) != root_abs:
        raise ValueError(f"Stored path {stored_path!r} is outside {root}")
    return full_path


def _discard(file_path: str):
    try:
        os.remove(file_path)
    except OSError:
        logger.warning("Could not remove partially written file %s", file_path)


def _write_exclusive(base_name: str, directory: str, content: bytes, extension: str) -> str:
    while True:
        _, file_path = generate_unique_file_name(base_name, directory, extension)
        try:
            handle = open(file_path, "xb")
        except FileExistsError:
            logger.info("Name %s was taken concurrently, probing again", file_path)
            continue
        except OSError as exc:
            raise StorageFault(f"Could not create {file_path}") from exc
        try:
            with handle:
                handle.write(content)
        except OSError as exc:
            _discard(file_path)
            raise StorageFault(f"Could not write {file_path}") from exc
        return file_path


def save_file_with_structure(content, value, organization: str, file_type: str,
                             root: str = UPLOADS_FOLDER, extension: str = "pdf"):
    """
    Stores `content` as
    <root>/<YYYY>/<month>/<DD.MM.YYYY> <organization> <file_type>[ (N)].<ext>
    and returns the path relative to the parent of `root`
    (e.g. "uploads/2024/Январь/15.01.2024 ООО Ромашка invoice.pdf").
    """
    if content is None:
        return None

    directory = create_date_folder_structure(value, root)
    base_name = build_base_name(value, organization, file_type)
    file_path = _write_exclusive(base_name, directory, content, extension)
    stored = to_stored_path(file_path, root)
    logger.info("Saved %s (%d bytes)", stored, len(content))
    return stored


def _is_already_in_place(full_path: str, value, organization: str, file_type: str,
                         root: str, extension: str) -> bool:
    target_dir = os.path.abspath(date_folder_path(value, root))
    if os.path.dirname(full_path) != target_dir:
        return False
    base_name = build_base_name(value, organization, file_type)
    pattern = re.escape(base_name) + r"( \(\d+\))?\." + re.escape(extension)
    return re.fullmatch(pattern, os.path.basename(full_path)) is not None


def move_file_to_new_structure(old_path: str, value, organization: str, file_type: str,
                               root: str = UPLOADS_FOLDER, extension: str = "pdf"):
    """
    Re-files a stored document after its date or organization changed.

    Returns the best known current path:
    - the old path when the file is already gone (nothing is written),
      when it already carries the right name, or when the new copy
      could not be written;
    - the new path otherwise, even if the original could not be removed
      afterwards (the duplicate is left on disk and logged).
    """
    if not old_path:
        return old_path

    full_path = resolve_stored_path(old_path, root)
    try:
        with open(full_path, "rb") as f:
            content = f.read()
    except FileNotFoundError:
        logger.warning("Stored file %s no longer exists, leaving path unchanged", old_path)
        return old_path
    except OSError as exc:
        raise StorageFault(f"Could not read {old_path}") from exc

    if _is_already_in_place(full_path, value, organization, file_type, root, extension):
        return old_path

    try:
        new_path = save_file_with_structure(content, value, organization, file_type, root, extension)
    except StorageFault:
        logger.exception("Could not relocate %s, keeping original", old_path)
        return old_path

    try:
        os.remove(full_path)
    except FileNotFoundError:
        pass
    except OSError:
        logger.exception("Relocated %s to %s but could not remove the original", old_path, new_path)
        return new_path

    logger.info("Relocated %s -> %s", old_path, new_path)
    return new_path


def claim_base_name(stored_path: str, root: str = UPLOADS_FOLDER):
    """
    If `stored_path` carries a " (N)" disambiguator and the plain name is
    free again, hard-links the plain name to the same file and returns its
    stored path. The suffixed name is left for the caller to remove once
    the record points at the plain one. Returns None when nothing changed.
    """
    if not stored_path:
        return None
    full_path = resolve_stored_path(stored_path, root)
    match = _DISAMBIGUATED.fullmatch(os.path.basename(full_path))
    if not match:
        return None
    plain_path = os.path.join(os.path.dirname(full_path), match.group("base") + match.group("ext"))
    try:
        os.link(full_path, plain_path)
    except FileExistsError:
        return None
    except OSError:
        logger.warning("Could not link %s to its plain name", stored_path, exc_info=True)
        return None
    return to_stored_path(plain_path, root)


def delete_stored_file(stored_path: str, root: str = UPLOADS_FOLDER) -> bool:
    if not stored_path:
        return False
    full_path = resolve_stored_path(stored_path, root)
    try:
        os.remove(full_path)
    except FileNotFoundError:
        logger.warning("Stored file %s already missing", stored_path)
        return False
    except OSError as exc:
        raise StorageFault(f"Could not delete {stored_path}") from exc
    logger.info("Deleted %s", stored_path)
    return True
