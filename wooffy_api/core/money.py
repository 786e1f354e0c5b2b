from decimal import Decimal, ROUND_HALF_UP

MONEY_QUANT = Decimal("0.01")


def to_money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def format_amount(value: Decimal | int | float | str | None) -> str:
    if value is None:
        return "0"
    amount = to_money(value)
    if amount == amount.to_integral_value():
        return str(int(amount))
    return f"{amount:.2f}"


def format_discount(value: Decimal | int | float | str | None, discount_type: str, *, currency_symbol: str) -> str:
    if (discount_type or "").lower() == "percentage":
        return f"{format_amount(value)}%"
    return f"{currency_symbol}{format_amount(value)}"
