"""Amount-in-words for invoices (English long form)."""
from decimal import Decimal, ROUND_HALF_UP

from jewelbill.models import Currency

ONES = ['', 'one', 'two', 'three', 'four', 'five', 'six', 'seven', 'eight', 'nine']
TEENS = ['ten', 'eleven', 'twelve', 'thirteen', 'fourteen', 'fifteen',
         'sixteen', 'seventeen', 'eighteen', 'nineteen']
TENS = ['', '', 'twenty', 'thirty', 'forty', 'fifty', 'sixty', 'seventy', 'eighty', 'ninety']
SCALES = ['', 'thousand', 'million', 'billion', 'trillion']

# (major unit, minor unit, minor units per major)
CURRENCY_UNITS = {
    Currency.INR: ('Rupees', 'Paise', 100),
    Currency.BHD: ('Bahraini Dinars', 'Fils', 1000),
}


def _hundreds_to_words(n: int) -> list:
    words = []
    if n >= 100:
        words += [ONES[n // 100], 'hundred']
        n %= 100
    if n >= 20:
        words.append(TENS[n // 10])
        n %= 10
    elif n >= 10:
        words.append(TEENS[n - 10])
        return words
    if n > 0:
        words.append(ONES[n])
    return words


def number_to_words(n: int) -> str:
    """
    Spell a non-negative integer.

    Examples:
        number_to_words(0) -> "zero"
        number_to_words(23072) -> "twenty three thousand seventy two"
    """
    if n < 0:
        raise ValueError("number_to_words expects a non-negative integer")
    if n >= 1000 ** len(SCALES):
        raise ValueError(f"number_to_words supports values below 10^{3 * len(SCALES)}")
    if n == 0:
        return 'zero'

    groups = []
    scale = 0
    while n > 0:
        chunk = n % 1000
        if chunk:
            words = _hundreds_to_words(chunk)
            if SCALES[scale]:
                words.append(SCALES[scale])
            groups.insert(0, ' '.join(words))
        n //= 1000
        scale += 1
    return ' '.join(groups)


def amount_in_words(amount, currency: Currency) -> str:
    """
    Invoice wording for an amount.

    Examples:
        amount_in_words(Decimal('23072.00'), Currency.INR)
            -> "Rupees twenty three thousand seventy two Only"
        amount_in_words(Decimal('121.500'), Currency.BHD)
            -> "Bahraini Dinars one hundred twenty one and five hundred Fils Only"
    """
    major_name, minor_name, minor_per_major = CURRENCY_UNITS[currency]
    value = Decimal(amount).quantize(currency.quantum, rounding=ROUND_HALF_UP)
    minor_total = int(value * minor_per_major)
    major, minor = divmod(minor_total, minor_per_major)

    text = f"{major_name} {number_to_words(major)}"
    if minor:
        text += f" and {number_to_words(minor)} {minor_name}"
    return f"{text} Only"
