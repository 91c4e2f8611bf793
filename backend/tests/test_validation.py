"""Tests for payload validation."""

from datetime import date, datetime

import pytest

from conftest import invoice_definition
from metadoc.core.errors import NotFoundError, ValidationFailedError
from metadoc.metadata.types import DocFieldDefinition, DocTypeDefinition
from metadoc.validation.engine import DocumentValidator, check_field_format


def _field(type_, **kwargs):
    return DocFieldDefinition(name="f", type=type_, label="F", **kwargs)


class TestFieldFormats:
    @pytest.mark.parametrize("value", [1, -3, "42", 2.0])
    def test_int_ok(self, value):
        assert check_field_format(_field("Int"), value) is None

    @pytest.mark.parametrize("value", ["abc", 1.5, True])
    def test_int_bad(self, value):
        assert check_field_format(_field("Int"), value).code == "INVALID_INT"

    @pytest.mark.parametrize("type_", ["Float", "Currency"])
    def test_number(self, type_):
        assert check_field_format(_field(type_), "12.50") is None
        assert check_field_format(_field(type_), 3) is None
        assert check_field_format(_field(type_), "twelve").code == "INVALID_NUMBER"
        assert check_field_format(_field(type_), "NaN").code == "INVALID_NUMBER"

    def test_date(self):
        assert check_field_format(_field("Date"), "2024-02-29") is None
        assert check_field_format(_field("Date"), date(2024, 1, 1)) is None
        assert check_field_format(_field("Date"), "2023-02-29").code == "INVALID_DATE"

    def test_datetime(self):
        assert check_field_format(_field("Datetime"), "2024-01-01T10:30:00") is None
        assert check_field_format(_field("Datetime"), datetime(2024, 1, 1)) is None
        assert check_field_format(_field("Datetime"), "yesterday").code == "INVALID_DATETIME"

    def test_check(self):
        assert check_field_format(_field("Check"), True) is None
        assert check_field_format(_field("Check"), 0) is None
        assert check_field_format(_field("Check"), 2).code == "INVALID_CHECK"
        assert check_field_format(_field("Check"), "yes").code == "INVALID_CHECK"

    def test_select_with_options(self):
        field = _field("Select", options="Draft\nPaid\n")
        assert check_field_format(field, "Paid") is None
        error = check_field_format(field, "Lost")
        assert error.code == "INVALID_OPTION"
        assert error.field == "f"

    def test_select_without_options_accepts_anything(self):
        assert check_field_format(_field("Select"), "Anything") is None

    def test_text_types_unchecked(self):
        assert check_field_format(_field("Data"), "x") is None
        assert check_field_format(_field("Long Text"), "x" * 10_000) is None

    @pytest.mark.parametrize("type_", ["Data", "Text", "Link", "Password", "Int", "Select"])
    @pytest.mark.parametrize("value", [{"x": 1}, ["a"]])
    def test_objects_and_arrays_rejected(self, type_, value):
        assert check_field_format(_field(type_), value).code == "INVALID_VALUE"


@pytest.fixture
def validator(registry):
    return DocumentValidator(registry)


class TestDocumentValidator:
    def test_required_fields_collected(self, db, validator, invoice):
        with db.tenant_transaction("tenant-a") as tx:
            with pytest.raises(ValidationFailedError) as exc_info:
                validator.validate("Invoice", {"amount": ""}, tx)
        assert exc_info.value.error_codes == ["REQUIRED", "REQUIRED"]
        assert [e.field for e in exc_info.value.errors] == ["amount", "status"]
        assert exc_info.value.status_code == 422

    def test_valid_payload(self, db, validator, invoice):
        with db.tenant_transaction("tenant-a") as tx:
            validator.validate("Invoice", {"amount": 10, "status": "Draft"}, tx)

    def test_unknown_doc_type(self, db, validator):
        with db.tenant_transaction("tenant-a") as tx:
            with pytest.raises(NotFoundError):
                validator.validate("Nope", {}, tx)

    def test_format_and_required_errors_together(self, db, validator, invoice):
        with db.tenant_transaction("tenant-a") as tx:
            with pytest.raises(ValidationFailedError) as exc_info:
                validator.validate("Invoice", {"amount": "lots"}, tx)
        assert exc_info.value.error_codes == ["INVALID_NUMBER", "REQUIRED"]


class TestLinkValidation:
    @pytest.fixture
    def linked(self, synchronizer, engine, admin, invoice):
        synchronizer.sync_doc_type(
            DocTypeDefinition.from_dict({
                "doctype": "Customer",
                "fields": [{"name": "customer_name", "type": "Data"}],
            })
        )
        synchronizer.sync_doc_type(
            invoice_definition(
                fields=[
                    {"name": "amount", "type": "Float"},
                    {"name": "status", "type": "Select"},
                    {"name": "customer", "type": "Link", "target": "Customer"},
                    {"name": "region", "type": "Link", "target": "Region"},
                ]
            )
        )
        engine.create("Customer", {"name": "ACME", "customer_name": "Acme"}, admin)

    def test_existing_target_row(self, db, validator, linked):
        with db.tenant_transaction("tenant-a") as tx:
            validator.validate("Invoice", {"customer": "ACME"}, tx)

    def test_missing_target_row(self, db, validator, linked):
        with db.tenant_transaction("tenant-a") as tx:
            with pytest.raises(ValidationFailedError) as exc_info:
                validator.validate("Invoice", {"customer": "Globex"}, tx)
        assert exc_info.value.error_codes == ["LINK_MISMATCH"]

    def test_target_row_in_other_tenant(self, db, validator, linked):
        with db.tenant_transaction("tenant-b") as tx:
            with pytest.raises(ValidationFailedError) as exc_info:
                validator.validate("Invoice", {"customer": "ACME"}, tx)
        assert exc_info.value.error_codes == ["LINK_MISMATCH"]

    def test_unknown_target_doc_type(self, db, validator, linked):
        with db.tenant_transaction("tenant-a") as tx:
            with pytest.raises(ValidationFailedError) as exc_info:
                validator.validate("Invoice", {"region": "EU"}, tx)
        assert exc_info.value.error_codes == ["LINK_TARGET_INVALID"]

    def test_empty_link_skipped(self, db, validator, linked):
        with db.tenant_transaction("tenant-a") as tx:
            validator.validate("Invoice", {"customer": None, "region": ""}, tx)
