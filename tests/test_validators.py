import pytest

from services.validators import has_required_fields, is_valid_phone, is_valid_price, is_valid_zip, missing_fields


class TestValidators:

    def test_missing_fields(self):
        record = {"full_name": "Ann", "phone": "  ", "email": None}
        assert missing_fields(record, ("full_name", "phone", "email", "city")) == ["phone", "email", "city"]
        assert has_required_fields(record, ("full_name",))

    @pytest.mark.parametrize("number,ok", [("(512) 555-0100", True), ("+1 512 555 0100", True), ("555-0100", False), ("", False)])
    def test_phone(self, number, ok):
        assert is_valid_phone(number) is ok

    @pytest.mark.parametrize("value,ok", [(0, True), ("12.50", True), (-1, False), ("free", False), (None, False)])
    def test_price(self, value, ok):
        assert is_valid_price(value) is ok

    @pytest.mark.parametrize("value,ok", [("78701", True), ("78701-1234", True), ("7870", False), ("ABCDE", False)])
    def test_zip(self, value, ok):
        assert is_valid_zip(value) is ok
