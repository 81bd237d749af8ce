import pytest

from config.logging_config import mask_sensitive_data

pytestmark = pytest.mark.unit


class TestSensitiveDataMasking:
    def test_email_masked(self):
        event_dict = {"event": "test", "client": "Brenda Fon <brenda@example.com>"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "brenda@example.com" not in result["client"]
        assert result["client"] == "Brenda Fon <***MASKED***>"

    @pytest.mark.parametrize("phone", ["+237 6 77 12 34 56", "+237677123456", "+33-6-12-34-56-78"])
    def test_international_phone_masked(self, phone):
        event_dict = {"event": "test", "phone": f"call {phone}"}
        result = mask_sensitive_data(None, None, event_dict)
        assert phone not in result["phone"]
        assert "***MASKED***" in result["phone"]

    def test_password_masked(self):
        event_dict = {"event": "test", "data": "password='s3cret123'"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "s3cret123" not in result["data"]
        assert "***MASKED***" in result["data"]

    def test_token_masked(self):
        event_dict = {"event": "test", "header": "token=abc123xyz"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "abc123xyz" not in result["header"]
        assert "***MASKED***" in result["header"]

    def test_authorization_header_masked(self):
        event_dict = {"event": "test", "header": "Authorization: eyJhbGciOi.payload.sig"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "eyJhbGciOi" not in result["header"]

    @pytest.mark.parametrize(
        "value",
        ["ORD-001", "2026-12-12T14:00:00+01:00", "650000.00", "client-1", "XAF 300,000"],
    )
    def test_non_sensitive_data_unchanged(self, value):
        event_dict = {"event": "order.created", "value": value}
        result = mask_sensitive_data(None, None, event_dict)
        assert result["value"] == value
        assert result["event"] == "order.created"

    def test_non_string_values_untouched(self):
        event_dict = {"event": "test", "count": 3, "ids": ["brenda@example.com"]}
        result = mask_sensitive_data(None, None, event_dict)
        assert result["count"] == 3
        assert result["ids"] == ["brenda@example.com"]
