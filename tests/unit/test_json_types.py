"""
Unit tests for the JSON value machines.
"""

import pytest

from structure_guard.errors import GrammarConfigurationError
from structure_guard.types.json import (
    ArrayStateMachine,
    BooleanStateMachine,
    EnumStateMachine,
    IntegerStateMachine,
    JsonStateMachine,
    NullStateMachine,
    NumberStateMachine,
    ObjectStateMachine,
    StringStateMachine,
)

from tests.conftest import accepts, advance_text


def value_of(state_machine, text):
    """Parsed value of the first accepting path after feeding `text`."""
    steppers = advance_text(state_machine, list(text))
    return next(
        stepper.get_current_value()
        for stepper in steppers
        if stepper.has_reached_accept_state()
    )


class TestString:
    """Test JSON string literals."""

    def test_plain_and_escaped(self):
        """Test ordinary strings and escapes."""
        string = StringStateMachine()

        assert accepts(string, '"hello"')
        assert accepts(string, '""')
        assert accepts(string, '"a\\nb"')
        assert accepts(string, '"\\u00e9"')

    def test_rejects_malformed(self):
        """Test unterminated strings and raw control characters."""
        string = StringStateMachine()

        assert not accepts(string, '"open')
        assert not accepts(string, '"a\nb"')
        assert not accepts(string, 'bare')
        assert not accepts(string, '"\\x"')

    def test_length_bounds(self):
        """Test minLength and maxLength on the decoded contents."""
        string = StringStateMachine(min_length=2, max_length=3)

        assert not accepts(string, '"a"')
        assert accepts(string, '"ab"')
        assert accepts(string, '"abc"')
        assert not accepts(string, '"abcd"')

    def test_pattern(self):
        """Test contents restricted by a pattern."""
        string = StringStateMachine(pattern=r"^[a-z]+$")

        assert accepts(string, '"abc"')
        assert not accepts(string, '"aB"')

    def test_open_ended_pattern_stops_at_the_quote(self):
        """Test a pattern that allows any character still lets the string close."""
        string = StringStateMachine(pattern=r"^[A-Z].*$")

        assert value_of(string, '"Sam"') == "Sam"
        assert not accepts(string, '"sam"')

        [stepper] = [
            stepper for stepper in advance_text(string, ['"', "Sam", '"'])
            if stepper.has_reached_accept_state()
        ]
        assert stepper.get_current_value() == "Sam"

    def test_pattern_matching_empty_string(self):
        """Test an empty string is accepted when the pattern allows it."""
        string = StringStateMachine(pattern=r"^a*$")

        assert accepts(string, '""')
        assert accepts(string, '"aa"')
        assert not accepts(string, '"b"')

    def test_pattern_refuses_escapes(self):
        """Test patterned contents never contain quotes or backslashes."""
        string = StringStateMachine(pattern=r"^.*$")

        assert accepts(string, '"a b"')
        assert not accepts(string, '"a\\nb"')
        assert not accepts(string, '"a"b"')

    def test_value(self):
        """Test the decoded value, including from a single token."""
        assert value_of(StringStateMachine(), '"a\\"b"') == 'a"b'

        [stepper] = advance_text(StringStateMachine(), ['"hi"'])
        assert stepper.has_reached_accept_state()
        assert stepper.get_current_value() == "hi"

    def test_invalid_bounds(self):
        """Test maxLength below minLength."""
        with pytest.raises(GrammarConfigurationError):
            StringStateMachine(min_length=5, max_length=2)


class TestNumbers:
    """Test integers and numbers."""

    def test_integer(self):
        """Test JSON integer syntax."""
        integer = IntegerStateMachine()

        for text in ("0", "7", "-12", "120"):
            assert accepts(integer, text), text
        for text in ("012", "-", "1.5", "+1"):
            assert not accepts(integer, text), text

    def test_number(self):
        """Test fractions and exponents."""
        number = NumberStateMachine()

        for text in ("1", "1.5", "-0.25", "2E+3", "6e-2"):
            assert accepts(number, text), text
        for text in ("1.", ".5", "1e", "01"):
            assert not accepts(number, text), text

    def test_values(self):
        """Test parsed numeric values."""
        assert value_of(IntegerStateMachine(), "-12") == -12
        assert value_of(NumberStateMachine(), "-2.5") == -2.5


class TestLiterals:
    """Test booleans, null and enums."""

    def test_boolean(self):
        """Test true and false."""
        assert accepts(BooleanStateMachine(), "true")
        assert accepts(BooleanStateMachine(), "false")
        assert not accepts(BooleanStateMachine(), "tru")
        assert value_of(BooleanStateMachine(), "false") is False

    def test_null(self):
        """Test null."""
        assert accepts(NullStateMachine(), "null")
        assert value_of(NullStateMachine(), "null") is None

    def test_enum(self):
        """Test enum members are matched in their JSON form."""
        enum = EnumStateMachine(["red", 3, None])

        assert accepts(enum, '"red"')
        assert accepts(enum, "3")
        assert accepts(enum, "null")
        assert not accepts(enum, "red")
        assert not accepts(enum, '"blue"')
        assert value_of(enum, '"red"') == "red"

    def test_empty_enum(self):
        """Test an enum needs members."""
        with pytest.raises(GrammarConfigurationError):
            EnumStateMachine([])


class TestArray:
    """Test arrays."""

    def test_untyped(self):
        """Test arrays of any JSON values."""
        array = ArrayStateMachine()

        assert accepts(array, "[]")
        assert accepts(array, '[1, "a", null]')
        assert not accepts(array, "[1,]")
        assert value_of(array, "[1, [true]]") == [1, [True]]

    def test_item_bounds(self):
        """Test minItems and maxItems."""
        array = ArrayStateMachine(IntegerStateMachine(), min_items=1, max_items=2)

        assert not accepts(array, "[]")
        assert accepts(array, "[1]")
        assert accepts(array, "[1, 2]")
        assert not accepts(array, "[1,2,3]")
        assert not accepts(array, '["a"]')

    def test_invalid_bounds(self):
        """Test maxItems below minItems."""
        with pytest.raises(GrammarConfigurationError):
            ArrayStateMachine(min_items=3, max_items=2)


class TestObject:
    """Test objects."""

    @pytest.fixture
    def record(self):
        return ObjectStateMachine(
            properties={"a": IntegerStateMachine(), "b": BooleanStateMachine()},
            required=["a"],
        )

    def test_required(self, record):
        """Test the object only closes once required keys are present."""
        assert accepts(record, '{"a": 1}')
        assert accepts(record, '{ "a" : 1 }')
        assert not accepts(record, "{}")
        assert not accepts(record, '{"b": true}')

    def test_any_order_no_repeats(self, record):
        """Test declared keys in any order, each at most once."""
        assert accepts(record, '{"a": 1, "b": true}')
        assert accepts(record, '{"b":true,"a":1}')
        assert not accepts(record, '{"a":1,"a":2}')
        assert not accepts(record, '{"a":1,}')

    def test_additional_properties(self, record):
        """Test undeclared keys are refused unless allowed."""
        assert not accepts(record, '{"a":1,"c":2}')

        open_record = ObjectStateMachine(
            properties={"a": IntegerStateMachine()},
            additional_properties=True,
        )
        assert accepts(open_record, '{"a":1,"z":"q"}')

        typed_extra = ObjectStateMachine(
            properties={},
            additional_properties=IntegerStateMachine(),
        )
        assert accepts(typed_extra, '{"x":1}')
        assert not accepts(typed_extra, '{"x":"1"}')

    def test_generic_object(self):
        """Test an object without declared properties."""
        generic = ObjectStateMachine()

        assert accepts(generic, '{"x": [1, {"y": null}]}')
        assert value_of(generic, '{"k": "v"}') == {"k": "v"}

    def test_value(self, record):
        """Test the parsed object value."""
        assert value_of(record, '{"b": false, "a": 7}') == {"b": False, "a": 7}

    def test_undeclared_required(self):
        """Test a required key that can never appear."""
        with pytest.raises(GrammarConfigurationError):
            ObjectStateMachine(properties={"a": IntegerStateMachine()}, required=["b"])


class TestJsonValue:
    """Test the any-value machine."""

    @pytest.mark.parametrize("text", ['"a"', "1.5", "true", "null", "[]", '{"k": [true, 1.5]}'])
    def test_accepts_values(self, text):
        """Test every JSON value kind."""
        assert accepts(JsonStateMachine(), text)

    def test_rejects_garbage(self):
        """Test non-JSON text."""
        assert not accepts(JsonStateMachine(), "nope")
