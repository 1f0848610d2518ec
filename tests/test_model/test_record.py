"""
Tests for typed records.

Copyright (c) 2024 Cleansheet LLC
License: CC BY 4.0
"""

from typing import Any

import pytest

from fhir_datatypes.codec.choice import ChoiceValue
from fhir_datatypes.exceptions import (
    CardinalityError,
    ChoiceConflict,
    RequiredFieldMissing,
    UnknownElement,
    UnknownVariant,
)
from fhir_datatypes.model.record import Record


class TestRecordConstruction:
    """Tests for building records from keyword arguments."""

    def test_extension_string_value(self):
        """Test a suffixed keyword populates the choice element."""
        ext = Record("Extension", url="http://example.org/x", valueString="a")

        assert ext.url == "http://example.org/x"
        assert ext.value == ChoiceValue("string", "a")
        assert ext.valueString == "a"
        assert ext.valueBoolean is None

    def test_choice_conflict(self):
        """Test two variants at construction raise ChoiceConflict."""
        with pytest.raises(ChoiceConflict) as exc_info:
            Record("Extension", url="http://example.org/x", valueString="a", valueBoolean=True)

        assert exc_info.value.path == "Extension.value[x]"

    def test_unknown_variant(self):
        """Test an undeclared suffix raises UnknownVariant."""
        with pytest.raises(UnknownVariant) as exc_info:
            Record("Extension", url="http://example.org/x", valueFooBar=1)

        assert exc_info.value.suffix == "FooBar"

    def test_unknown_element(self):
        """Test an undeclared keyword raises UnknownElement."""
        with pytest.raises(UnknownElement) as exc_info:
            Record("Period", start="2024-01-01", finish="2024-02-01")

        assert exc_info.value.path == "Period.finish"

    def test_required_missing(self):
        """Test a missing required element raises at its path."""
        with pytest.raises(RequiredFieldMissing) as exc_info:
            Record("Extension", valueString="a")

        assert exc_info.value.path == "Extension.url"

    def test_signature_type_empty(self, sample_signature: dict[str, Any]):
        """Test Signature.type with zero entries raises RequiredFieldMissing."""
        sample_signature["type"] = []

        with pytest.raises(RequiredFieldMissing) as exc_info:
            Record("Signature", **sample_signature)

        assert exc_info.value.path == "Signature.type"

    def test_required_choice(self):
        """Test UsageContext requires a value variant."""
        with pytest.raises(RequiredFieldMissing) as exc_info:
            Record("UsageContext", code={"code": "age"})

        assert exc_info.value.path == "UsageContext.value[x]"

    def test_nested_dicts_become_records(self, sample_signature: dict[str, Any]):
        """Test dict payloads of complex elements are decoded into records."""
        signature = Record("Signature", **sample_signature)

        assert isinstance(signature.who, Record)
        assert signature.who.reference == "Practitioner/example"
        assert signature.type[0].code == "1.2.840.10065.1.12.1.1"

    def test_choice_value_keyword(self):
        """Test assigning a ChoiceValue through the base name."""
        ext = Record("Extension", url="http://example.org/x", value=ChoiceValue("dateTime", "2024"))

        assert ext.valueDateTime == "2024"

    def test_choice_value_suffix_spelling(self):
        """Test a ChoiceValue tagged with the wire suffix is normalized."""
        ext = Record("Extension", url="http://example.org/x", value=ChoiceValue("DateTime", "2024"))

        assert ext.value.type_name == "dateTime"

    def test_base_name_requires_choice_value(self):
        """Test a bare payload cannot be assigned through the base name."""
        with pytest.raises(TypeError):
            Record("Extension", url="http://example.org/x", value="a")


class TestCardinality:
    """Tests for repeated and singular elements."""

    def test_repeated_accepts_single(self):
        """Test a single value for a repeated element is wrapped in a list."""
        name = Record("HumanName", given="Ada")

        assert name.given == ["Ada"]

    def test_repeated_accepts_many(self):
        """Test several values for a repeated element."""
        name = Record("HumanName", given=["Ada", "King"])

        assert name.given == ["Ada", "King"]

    def test_repeated_default_empty(self):
        """Test an unset repeated element reads as an empty list."""
        assert Record("HumanName").given == []

    def test_singular_rejects_many(self):
        """Test a list of two for a singular element raises CardinalityError."""
        with pytest.raises(CardinalityError) as exc_info:
            Record("HumanName", family=["Lovelace", "Byron"])

        assert exc_info.value.path == "HumanName.family"
        assert exc_info.value.count == 2

    def test_singular_unwraps_single_item_list(self):
        """Test a one-item list for a singular element is unwrapped."""
        assert Record("HumanName", family=["Lovelace"]).family == "Lovelace"


class TestRecordAccess:
    """Tests for reading and assigning elements."""

    def test_keyword_element_item_access(self):
        """Test item access reaches every element by its literal name."""
        ext = Record("Extension", url="http://example.org/x", valueBoolean=False)

        assert ext["url"] == "http://example.org/x"
        assert ext["valueBoolean"] is False

    def test_unknown_attribute(self):
        """Test reading an undeclared element."""
        period = Record("Period")

        with pytest.raises(AttributeError):
            period.finish
        assert period.get("finish", "n/a") == "n/a"

    def test_set_replaces_variant(self):
        """Test assignment after construction replaces the populated variant."""
        ext = Record("Extension", url="http://example.org/x", valueString="a")

        ext.valueBoolean = True

        assert ext.valueString is None
        assert ext.valueBoolean is True
        assert ext.to_dict() == {"url": "http://example.org/x", "valueBoolean": True}

    def test_clear_variant(self):
        """Test assigning None to the populated variant clears it."""
        ext = Record("Extension", url="http://example.org/x", valueString="a")

        ext.valueString = None

        assert ext.value is None

    def test_clear_other_variant_keeps_value(self):
        """Test clearing a variant that is not populated leaves the choice alone."""
        ext = Record("Extension", url="http://example.org/x", valueString="a")

        ext.valueBoolean = None

        assert ext.valueString == "a"

    def test_set_required_to_none(self):
        """Test clearing a required element raises."""
        ext = Record("Extension", url="http://example.org/x")

        with pytest.raises(RequiredFieldMissing):
            ext.url = None

    def test_failed_set_leaves_record_unchanged(self):
        """Test a rejected assignment keeps the previous value."""
        ext = Record("Extension", url="http://example.org/x", valueString="a")

        with pytest.raises(RequiredFieldMissing):
            ext.set("url", None)

        assert ext.url == "http://example.org/x"
        assert ext.to_dict() == {"url": "http://example.org/x", "valueString": "a"}

    def test_failed_set_of_repeated_element(self, sample_signature: dict[str, Any]):
        """Test emptying a required repeated element keeps its entries."""
        signature = Record("Signature", **sample_signature)

        with pytest.raises(RequiredFieldMissing):
            signature.type = []

        assert signature.type[0].code == "1.2.840.10065.1.12.1.1"

    def test_failed_companion_set_keeps_companions(self):
        """Test a rejected assignment does not touch primitive companions."""
        period = Record("Period", start="2024", _start={"id": "s1"})

        with pytest.raises(UnknownElement):
            period.set("_finish", {"id": "f1"})

        assert period.companions["start"].id == "s1"
        assert "finish" not in period.companions

    def test_private_attribute(self):
        """Test private attributes cannot be assigned."""
        with pytest.raises(AttributeError):
            Record("Period")._values = {}

    def test_contains(self):
        """Test membership reflects populated elements."""
        period = Record("Period", start="2024-01-01")

        assert "start" in period
        assert "end" not in period

    def test_populated_order(self):
        """Test populated elements are yielded in schema order."""
        period = Record("Period", end="2024-02-01", start="2024-01-01")

        assert [element.name for element, _ in period.populated()] == ["start", "end"]

    def test_primitive_companion(self):
        """Test a companion element attaches to its primitive."""
        period = Record("Period", start="2024-01-01", _start={"id": "s1"})

        assert period.companions["start"].id == "s1"
        assert period.to_dict() == {"start": "2024-01-01", "_start": {"id": "s1"}}

    def test_choice_companion(self):
        """Test a companion element attaches to the populated variant."""
        ext = Record("Extension", url="http://example.org/x", valueString="a", _valueString={"id": "v"})

        assert ext.value.element.id == "v"


class TestRecordEquality:
    """Tests for equality and repr."""

    def test_equal(self):
        """Test records with the same content are equal."""
        assert Record("Period", start="2024") == Record("Period", start="2024")

    def test_type_matters(self):
        """Test records of different types are not equal."""
        assert Record("Period") != Record("Range")

    def test_repr(self):
        """Test repr shows populated wire keys."""
        ext = Record("Extension", url="u", valueInteger=3)

        assert repr(ext) == "Extension(url='u', valueInteger=3)"
