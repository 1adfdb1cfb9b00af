"""Currency helpers"""
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

CURRENCY_DECIMALS = {
    'VND': 0,
    'USD': 2,
}

CURRENCY_SYMBOLS = {
    'VND': '₫',
    'USD': '$',
}


def to_decimal(value, default=Decimal('0')):
    if value is None or value == '':
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


def round_money(amount, currency='VND'):
    """Round to the currency's minor unit (VND has none)"""
    places = CURRENCY_DECIMALS.get(currency, 2)
    quantum = Decimal(1).scaleb(-places)
    return to_decimal(amount).quantize(quantum, rounding=ROUND_HALF_UP)


def _group(digits, separator):
    parts = []
    while len(digits) > 3:
        parts.insert(0, digits[-3:])
        digits = digits[:-3]
    parts.insert(0, digits)
    return separator.join(parts)


def format_money(amount, currency='VND', locale='vi'):
    """
    VND: 1.234.567 ₫
    USD: $1,234.56 (en) or 1.234,56 $ (vi)
    """
    value = round_money(amount, currency)
    places = CURRENCY_DECIMALS.get(currency, 2)
    negative = value < 0
    integer_part, _, fraction = f"{abs(value):.{places}f}".partition('.')
    symbol = CURRENCY_SYMBOLS.get(currency, currency)

    if locale == 'vi' or currency == 'VND':
        text = _group(integer_part, '.')
        if fraction:
            text = f"{text},{fraction}"
        text = f"{text} {symbol}"
    else:
        text = _group(integer_part, ',')
        if fraction:
            text = f"{text}.{fraction}"
        text = f"{symbol}{text}"
    return f"-{text}" if negative else text
