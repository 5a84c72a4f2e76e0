import pytest
from jsonschema import ValidationError

from plan_extraction.models.contracts import Evidence, ExtractionResult, Signal
from plan_extraction.validators.schema_validator import SchemaValidator


def _payload() -> dict:
    evidence = Evidence(page=2, snippet="FAR: 3.0", source_type="zoning_text", confidence=0.85)
    result = ExtractionResult(status="complete", total_units=Signal(value=14, confidence=0.6, evidence=(evidence,)))
    return result.to_dict()


def test_result_payload_is_valid() -> None:
    assert SchemaValidator().validate(_payload()) == []


def test_empty_result_is_valid() -> None:
    assert SchemaValidator().validate(ExtractionResult.empty("nothing to do").to_dict()) == []


def test_unknown_fields_are_rejected() -> None:
    payload = _payload()
    payload["surprise"] = True
    errors = SchemaValidator().validate(payload)
    assert len(errors) == 1
    assert "Additional properties" in errors[0]


def test_errors_carry_their_path() -> None:
    payload = _payload()
    payload["total_units"]["evidence"] = []
    payload["status"] = "done"
    errors = SchemaValidator().validate(payload)
    assert errors[0].startswith("status: ")
    assert errors[1].startswith("total_units: ")


def test_ensure_valid_raises() -> None:
    payload = _payload()
    payload["page_count"] = -1
    with pytest.raises(ValidationError):
        SchemaValidator().ensure_valid(payload)
