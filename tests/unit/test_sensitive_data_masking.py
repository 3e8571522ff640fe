import pytest

from config.settings import mask_sensitive_data

pytestmark = pytest.mark.unit


class TestSensitiveDataMasking:
    @pytest.mark.parametrize("document", ["598.601.842-75", "59860184275"])
    def test_producer_cpf_masked(self, document):
        event_dict = {"event": "producer.saved", "document": document}
        result = mask_sensitive_data(None, None, event_dict)
        assert document not in result["document"]
        assert "***MASKED***" in result["document"]

    @pytest.mark.parametrize("document", ["11.222.333/0001-81", "11222333000181"])
    def test_producer_cnpj_masked(self, document):
        event_dict = {"event": "producer.saved", "document": document}
        result = mask_sensitive_data(None, None, event_dict)
        assert document not in result["document"]
        assert "***MASKED***" in result["document"]

    def test_document_inside_message_masked(self):
        event_dict = {"event": "producer.lookup", "detail": "no producer for 59860184275 found"}
        result = mask_sensitive_data(None, None, event_dict)
        assert result["detail"] == "no producer for ***MASKED*** found"

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

    def test_non_sensitive_data_unchanged(self):
        event_dict = {
            "event": "order.saved",
            "status": "IN_NEGOTIATION",
            "version": 3,
            "freight_value": "250.00",
        }
        result = mask_sensitive_data(None, None, event_dict)
        assert result["status"] == "IN_NEGOTIATION"
        assert result["version"] == 3
        assert result["freight_value"] == "250.00"
        assert result["event"] == "order.saved"
