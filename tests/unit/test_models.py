"""
Unit tests for SQLAlchemy models.
"""

import pytest
from datetime import datetime
from decimal import Decimal

from jewelbill.models import Bill, BillItem, Currency, MetalRate, normalize_payment_method


def _bill(**kwargs):
    fields = {
        'bill_number': 'PJ/20250819-001',
        'customer_name': 'Asha Rao',
        'customer_email': 'asha@example.com',
        'customer_phone': '9840012345',
        'customer_address': 'Salem',
        'currency': 'INR',
        'making_charge_percent': Decimal('12'),
        'tax_percent': Decimal('3'),
        'subtotal': Decimal('20000'),
        'making_charges': Decimal('2400'),
        'gst': Decimal('672'),
        'vat': Decimal('0'),
        'discount': Decimal('0'),
        'total': Decimal('23072'),
        'paid_amount': Decimal('23072'),
        'payment_method': 'CASH',
        'created_at': datetime(2025, 8, 19, 11, 30),
    }
    fields.update(kwargs)
    return Bill(**fields)


class TestCurrency:

    def test_parse(self):
        assert Currency.parse('inr') is Currency.INR
        assert Currency.parse(' BHD ') is Currency.BHD

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            Currency.parse('USD')

    def test_precision_and_labels(self):
        assert Currency.INR.places == 2 and Currency.BHD.places == 3
        assert Currency.INR.tax_label == 'GST'
        assert Currency.BHD.tax_label == 'VAT'


class TestPaymentMethod:

    def test_default_is_cash(self):
        assert normalize_payment_method(None) == 'CASH'
        assert normalize_payment_method('') == 'CASH'

    def test_normalizes_spelling(self):
        assert normalize_payment_method('bank transfer') == 'BANK_TRANSFER'
        assert normalize_payment_method('upi') == 'UPI'

    def test_unknown_rejected(self):
        with pytest.raises(ValueError):
            normalize_payment_method('CHEQUE')


class TestBillModel:
    """Tests for Bill and BillItem."""

    def test_persist_with_items(self, session):
        bill = _bill()
        bill.items.append(BillItem(
            position=1, product_id='p-2', product_name='Bangle', quantity=1,
            price_inr=Decimal('5000'), making_charges=Decimal('600'),
            sgst=Decimal('84'), cgst=Decimal('84'), total=Decimal('5768')
        ))
        bill.items.append(BillItem(
            position=0, product_id='p-1', product_name='Chain', quantity=2,
            price_inr=Decimal('10000'), making_charges=Decimal('2400'),
            sgst=Decimal('336'), cgst=Decimal('336'), total=Decimal('23072')
        ))
        session.add(bill)
        session.commit()

        stored = session.query(Bill).filter_by(bill_number='PJ/20250819-001').one()
        assert stored.id is not None
        assert [item.product_name for item in stored.items] == ['Chain', 'Bangle']
        assert stored.total_quantity == 3
        assert stored.sgst_total == Decimal('420')

    def test_bill_number_unique(self, session):
        session.add(_bill())
        session.commit()
        session.add(_bill(customer_name='Someone Else'))
        with pytest.raises(Exception):  # IntegrityError
            session.commit()

    def test_to_dict_uses_currency_precision(self):
        data = _bill(currency='BHD', subtotal=Decimal('100'), making_charges=Decimal('10'),
                     gst=Decimal('0'), vat=Decimal('11'), total=Decimal('121'),
                     paid_amount=Decimal('121'), tax_percent=Decimal('10.000')).to_dict()
        assert data['total'] == '121.000'
        assert data['vat'] == '11.000'
        assert data['taxLabel'] == 'VAT'
        assert data['taxPercent'] == '10'
        assert data['billNumber'] == 'PJ/20250819-001'

    def test_legacy_vat_in_gst_column(self):
        """Older BHD bills kept VAT in the gst column."""
        bill = _bill(currency='BHD', gst=Decimal('11.000'), vat=Decimal('0'))
        assert bill.tax_amount == Decimal('11.000')

    def test_domestic_tax_reads_gst(self):
        assert _bill().tax_amount == Decimal('672')


class TestMetalRateModel:

    def test_to_dict(self, session):
        rate = MetalRate(
            metal='GOLD', purity='22K', market='INDIA',
            price_per_gram_inr=Decimal('9235.00'), price_per_gram_bhd=Decimal('40.152'),
            price_per_gram_usd=Decimal('110.60'), source='fallback'
        )
        session.add(rate)
        session.commit()
        data = rate.to_dict()
        assert data['pricePerGramInr'] == '9235.00'
        assert data['market'] == 'INDIA'
        assert data['lastUpdated'] is not None
