from __future__ import annotations

import unittest

from db.repositories.errors import PayloadTooLargeError, UploadValidationError
from db.repositories.validators import (
    DATASET_UPLOAD_POLICY,
    MAX_DATASET_FILE_BYTES,
    MAX_PROFILE_IMAGE_BYTES,
    PROFILE_IMAGE_POLICY,
    check_size,
    normalize_content_type,
    sanitize_file_name,
    validate_dataset_fields,
    validate_upload,
)


class TestDatasetUploadPolicy(unittest.TestCase):
    def test_accepts_file_at_exact_ceiling(self) -> None:
        check_size(MAX_DATASET_FILE_BYTES, DATASET_UPLOAD_POLICY)

    def test_rejects_one_byte_over_ceiling(self) -> None:
        with self.assertRaises(PayloadTooLargeError) as ctx:
            check_size(MAX_DATASET_FILE_BYTES + 1, DATASET_UPLOAD_POLICY)
        self.assertIn("100 MB", str(ctx.exception))

    def test_declared_size_over_ceiling_is_rejected_before_staging(self) -> None:
        with self.assertRaises(PayloadTooLargeError):
            validate_upload(
                file_name="big.csv",
                content_type="text/csv",
                declared_size=MAX_DATASET_FILE_BYTES + 1,
                policy=DATASET_UPLOAD_POLICY,
            )

    def test_rejects_disallowed_type(self) -> None:
        with self.assertRaises(UploadValidationError) as ctx:
            validate_upload(
                file_name="tool.bin",
                content_type="application/x-executable",
                declared_size=10,
                policy=DATASET_UPLOAD_POLICY,
            )
        self.assertIn("application/x-executable", str(ctx.exception))

    def test_type_is_reported_before_size(self) -> None:
        with self.assertRaises(UploadValidationError):
            validate_upload(
                file_name="tool.bin",
                content_type="application/x-executable",
                declared_size=MAX_DATASET_FILE_BYTES * 2,
                policy=DATASET_UPLOAD_POLICY,
            )

    def test_every_listed_type_is_accepted(self) -> None:
        for content_type in DATASET_UPLOAD_POLICY.allowed_content_types:
            with self.subTest(content_type=content_type):
                _, normalized = validate_upload(
                    file_name="f.dat",
                    content_type=content_type,
                    declared_size=1,
                    policy=DATASET_UPLOAD_POLICY,
                )
                self.assertEqual(normalized, content_type)

    def test_missing_content_type_falls_back_to_octet_stream(self) -> None:
        _, normalized = validate_upload(
            file_name="blob",
            content_type=None,
            declared_size=None,
            policy=DATASET_UPLOAD_POLICY,
        )
        self.assertEqual(normalized, "application/octet-stream")


class TestProfileImagePolicy(unittest.TestCase):
    def test_any_image_subtype_is_allowed(self) -> None:
        _, normalized = validate_upload(
            file_name="me.webp",
            content_type="image/webp",
            declared_size=1000,
            policy=PROFILE_IMAGE_POLICY,
        )
        self.assertEqual(normalized, "image/webp")

    def test_non_image_is_rejected(self) -> None:
        with self.assertRaises(UploadValidationError):
            validate_upload(
                file_name="notes.txt",
                content_type="text/plain",
                declared_size=10,
                policy=PROFILE_IMAGE_POLICY,
            )

    def test_five_megabyte_ceiling(self) -> None:
        check_size(MAX_PROFILE_IMAGE_BYTES, PROFILE_IMAGE_POLICY)
        with self.assertRaises(PayloadTooLargeError):
            check_size(MAX_PROFILE_IMAGE_BYTES + 1, PROFILE_IMAGE_POLICY)


class TestFieldHelpers(unittest.TestCase):
    def test_content_type_parameters_are_stripped(self) -> None:
        self.assertEqual(normalize_content_type("Text/CSV; charset=utf-8"), "text/csv")

    def test_file_name_loses_directory_components(self) -> None:
        self.assertEqual(sanitize_file_name("../../etc/passwd"), "passwd")
        self.assertEqual(sanitize_file_name("C:\\Users\\me\\data.csv"), "data.csv")

    def test_blank_file_name_is_rejected(self) -> None:
        with self.assertRaises(UploadValidationError):
            sanitize_file_name("   ")

    def test_required_dataset_fields(self) -> None:
        validate_dataset_fields(title="t", description="d", type="csv")
        for missing in ("title", "description", "type"):
            fields = {"title": "t", "description": "d", "type": "csv", missing: "  "}
            with self.subTest(missing=missing):
                with self.assertRaises(UploadValidationError):
                    validate_dataset_fields(**fields)
