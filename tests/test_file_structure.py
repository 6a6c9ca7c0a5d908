"""
Tests for services/files.py: folder layout, naming and saving.
"""
import os
import re
import threading
from datetime import date, datetime

import pytest

from services.files import (
    RUSSIAN_MONTHS,
    StorageFault,
    build_base_name,
    create_date_folder_structure,
    claim_base_name,
    delete_stored_file,
    generate_unique_file_name,
    get_russian_month_name,
    resolve_stored_path,
    sanitize_file_name,
    save_file_with_structure,
)


class TestSanitizeFileName:

    @pytest.mark.parametrize("raw, expected", [
        ('ООО "Ромашка"', "ООО Ромашка"),
        ("  ACME,  Inc.  ", "ACME Inc"),
        ("ИП Пётр/Ёлкин #1", "ИП ПётрЁлкин 1"),
        ("a\t\tb\nc", "a b c"),
        ("", ""),
        ("!!!", ""),
    ])
    def test_known_values(self, raw, expected):
        assert sanitize_file_name(raw) == expected

    def test_output_alphabet(self):
        """Only Latin/Cyrillic letters, digits and single inner spaces survive."""
        raw = '  «Рога & Копыта»  (Moscow) — №42; <tag> * ? | \\ / : "  '
        result = sanitize_file_name(raw)
        assert re.fullmatch(r"[a-zA-Zа-яА-ЯёЁ0-9 ]*", result)
        assert "  " not in result
        assert result == result.strip()
        assert result == "Рога Копыта Moscow 42 tag"


class TestRussianMonthName:

    def test_all_months_distinct(self):
        names = [get_russian_month_name(date(2024, m, 1)) for m in range(1, 13)]
        assert names == list(RUSSIAN_MONTHS)
        assert len(set(names)) == 12

    def test_stable_within_month(self):
        assert get_russian_month_name(date(2024, 1, 1)) == get_russian_month_name(date(2024, 1, 31))
        assert get_russian_month_name(datetime(2023, 12, 31, 23, 59)) == "Декабрь"
        assert get_russian_month_name("2024-05-09") == "Май"


class TestDateFolder:

    def test_creates_year_and_month(self, storage_root):
        path = create_date_folder_structure(date(2024, 1, 15), storage_root)
        assert path == os.path.join(storage_root, "2024", "Январь")
        assert os.path.isdir(path)

    def test_idempotent(self, storage_root):
        first = create_date_folder_structure(date(2024, 3, 1), storage_root)
        second = create_date_folder_structure(date(2024, 3, 31), storage_root)
        assert first == second

    def test_concurrent_creation_does_not_fail(self, storage_root):
        errors = []
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            try:
                create_date_folder_structure(date(2025, 6, 1), storage_root)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []

    def test_blocked_path_raises_storage_fault(self, storage_root):
        os.makedirs(storage_root)
        with open(os.path.join(storage_root, "2024"), "w") as f:
            f.write("not a folder")
        with pytest.raises(StorageFault):
            create_date_folder_structure(date(2024, 1, 15), storage_root)


class TestGenerateUniqueFileName:

    def test_free_name(self, tmp_path):
        file_name, file_path = generate_unique_file_name("2024 AAA invoice", str(tmp_path), "pdf")
        assert file_name == "2024 AAA invoice.pdf"
        assert file_path == os.path.join(str(tmp_path), file_name)

    def test_increments_on_collision(self, tmp_path):
        (tmp_path / "2024 AAA invoice.pdf").write_bytes(b"1")
        file_name, _ = generate_unique_file_name("2024 AAA invoice", str(tmp_path))
        assert file_name == "2024 AAA invoice (2).pdf"

        (tmp_path / file_name).write_bytes(b"2")
        file_name, _ = generate_unique_file_name("2024 AAA invoice", str(tmp_path))
        assert file_name == "2024 AAA invoice (3).pdf"

    def test_fills_first_gap(self, tmp_path):
        (tmp_path / "x.pdf").write_bytes(b"")
        (tmp_path / "x (3).pdf").write_bytes(b"")
        assert generate_unique_file_name("x", str(tmp_path))[0] == "x (2).pdf"


class TestSaveFileWithStructure:

    def test_layout_and_content(self, storage_root):
        content = b"%PDF-1.4 romashka"
        stored = save_file_with_structure(content, date(2024, 1, 15), 'ООО "Ромашка"', "invoice", storage_root)

        assert stored == "uploads/2024/Январь/15.01.2024 ООО Ромашка invoice.pdf"
        with open(resolve_stored_path(stored, storage_root), "rb") as f:
            assert f.read() == content

    def test_second_save_gets_disambiguator(self, storage_root):
        first = save_file_with_structure(b"1", date(2024, 1, 15), "AAA", "payment", storage_root)
        second = save_file_with_structure(b"2", date(2024, 1, 15), "AAA", "payment", storage_root)
        assert first.endswith("15.01.2024 AAA payment.pdf")
        assert second.endswith("15.01.2024 AAA payment (2).pdf")

    def test_none_content_stores_nothing(self, storage_root):
        assert save_file_with_structure(None, date(2024, 1, 15), "AAA", "invoice", storage_root) is None
        assert not os.path.exists(storage_root)

    def test_base_name(self):
        assert build_base_name(date(2024, 2, 3), "  АО  Вектор!! ", "payment") == "03.02.2024 АО Вектор payment"

    def test_concurrent_identical_saves_keep_both_files(self, storage_root):
        """Same date/organization/type at once: each writer ends with its own file."""
        results = {}
        barrier = threading.Barrier(6)

        def worker(n):
            barrier.wait()
            results[n] = save_file_with_structure(
                f"copy {n}".encode(), date(2024, 7, 1), "Race Ltd", "invoice", storage_root
            )

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(results.values())) == 6
        for n, stored in results.items():
            with open(resolve_stored_path(stored, storage_root), "rb") as f:
                assert f.read() == f"copy {n}".encode()


class TestStoredPaths:

    def test_rejects_escape_from_root(self, storage_root):
        with pytest.raises(ValueError):
            resolve_stored_path("uploads/../../etc/passwd", storage_root)

    def test_delete(self, storage_root):
        stored = save_file_with_structure(b"x", date(2024, 1, 15), "AAA", "invoice", storage_root)
        assert delete_stored_file(stored, storage_root) is True
        assert delete_stored_file(stored, storage_root) is False


class TestClaimBaseName:

    def test_takes_plain_name_when_free(self, storage_root):
        first = save_file_with_structure(b"old", date(2024, 1, 15), "AAA", "invoice", storage_root)
        second = save_file_with_structure(b"new", date(2024, 1, 15), "AAA", "invoice", storage_root)
        delete_stored_file(first, storage_root)

        assert claim_base_name(second, storage_root) == first
        with open(resolve_stored_path(first, storage_root), "rb") as f:
            assert f.read() == b"new"

    def test_plain_name_taken(self, storage_root):
        save_file_with_structure(b"old", date(2024, 1, 15), "AAA", "invoice", storage_root)
        second = save_file_with_structure(b"new", date(2024, 1, 15), "AAA", "invoice", storage_root)
        assert claim_base_name(second, storage_root) is None

    def test_without_disambiguator(self, storage_root):
        stored = save_file_with_structure(b"x", date(2024, 1, 15), "AAA", "invoice", storage_root)
        assert claim_base_name(stored, storage_root) is None
