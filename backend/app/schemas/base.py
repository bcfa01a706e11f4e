"""
Base schemas with standardized field types for consistent API responses.
"""
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Callable

from pydantic import AfterValidator

from pydantic_core import core_schema


class Money(Decimal):
    """
    Decimal amount that accepts JSON numbers or numeric strings and always
    serializes back as a JSON number. Floats go through ``str`` so that
    100.2 stays 100.2 instead of its binary approximation.
    """

    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any) -> core_schema.CoreSchema:
        def validate_money(value: Any) -> Decimal:
            if isinstance(value, bool):
                raise ValueError("Expected a number")
            if isinstance(value, Decimal):
                return value
            try:
                result = Decimal(str(value))
            except InvalidOperation as exc:
                raise ValueError(f"Cannot convert {value!r} to a decimal amount") from exc
            if not result.is_finite():
                raise ValueError("Amount must be finite")
            return result

        return core_schema.no_info_after_validator_function(
            validate_money,
            core_schema.union_schema(
                [
                    core_schema.is_instance_schema(Decimal),
                    core_schema.int_schema(),
                    core_schema.float_schema(),
                    core_schema.str_schema(),
                ]
            ),
            serialization=core_schema.plain_serializer_function_ser_schema(
                float,
                info_arg=False,
                return_schema=core_schema.float_schema(),
            ),
        )


def max_decimal_places(places: int) -> Callable[[Decimal], Decimal]:
    """Reject values finer than the column that stores them."""

    def check(value: Decimal) -> Decimal:
        exponent = value.normalize().as_tuple().exponent
        if isinstance(exponent, int) and -exponent > places:
            raise ValueError(f"At most {places} decimal places are allowed")
        return value

    return check


# Currency amounts and meter hours, stored as Numeric(12, 2)
Amount = Annotated[Money, AfterValidator(max_decimal_places(2))]
# Item quantities and tax rates, stored with four places
Quantity = Annotated[Money, AfterValidator(max_decimal_places(4))]
Rate = Annotated[Money, AfterValidator(max_decimal_places(4))]
