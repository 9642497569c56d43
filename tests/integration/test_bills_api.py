"""
Integration tests for the bills API.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from jewelbill.models import Bill, BillItem


def _today_prefix():
    return f"PJ/{date.today().strftime('%Y%m%d')}-"


class TestCreateBill:
    """POST /bills."""

    def test_domestic_bill(self, client, auth_headers, bill_payload, inr_product):
        response = client.post('/bills', json=bill_payload, headers=auth_headers)

        assert response.status_code == 201
        data = response.get_json()
        assert data['billNumber'] == _today_prefix() + '001'
        assert data['currency'] == 'INR'
        assert data['subtotal'] == '20000.00'
        assert data['makingCharges'] == '2400.00'
        assert data['gst'] == '672.00'
        assert data['vat'] == '0.00'
        assert data['total'] == '23072.00'
        assert data['paidAmount'] == '23072.00'
        assert data['makingChargePercent'] == '12'
        assert data['taxPercent'] == '3'

        item = data['items'][0]
        assert item['productId'] == inr_product.id
        assert item['productName'] == inr_product.name
        assert item['quantity'] == 2
        assert item['sgst'] == '336.00'
        assert item['cgst'] == '336.00'
        assert item['total'] == '23072.00'

    def test_gulf_bill(self, client, auth_headers, bill_payload):
        bill_payload.update({
            'currency': 'BHD', 'makingChargePercent': '10', 'vatPercent': '10', 'paymentMethod': 'CARD',
        })
        bill_payload['items'][0]['quantity'] = 1
        response = client.post('/bills', json=bill_payload, headers=auth_headers)

        assert response.status_code == 201
        data = response.get_json()
        assert data['subtotal'] == '100.000'
        assert data['makingCharges'] == '10.000'
        assert data['gst'] == '0.000'
        assert data['vat'] == '11.000'
        assert data['total'] == '121.000'
        assert data['taxLabel'] == 'VAT'
        assert data['items'][0]['vat'] == '11.000'

    def test_default_rates_from_config(self, client, auth_headers, bill_payload):
        for key in ('makingChargePercent', 'gstPercent', 'vatPercent'):
            bill_payload.pop(key)
        response = client.post('/bills', json=bill_payload, headers=auth_headers)

        assert response.status_code == 201
        assert response.get_json()['total'] == '23072.00'

    def test_numbers_increase(self, client, auth_headers, bill_payload):
        first = client.post('/bills', json=bill_payload, headers=auth_headers).get_json()
        second = client.post('/bills', json=bill_payload, headers=auth_headers).get_json()
        assert first['billNumber'].endswith('-001')
        assert second['billNumber'].endswith('-002')

    def test_bill_discount_and_partial_payment(self, client, auth_headers, bill_payload):
        bill_payload.update({'discount': '72', 'paidAmount': '20000'})
        data = client.post('/bills', json=bill_payload, headers=auth_headers).get_json()
        assert data['discount'] == '72.00'
        assert data['total'] == '23000.00'
        assert data['paidAmount'] == '20000.00'

    def test_matching_client_totals_accepted(self, client, auth_headers, bill_payload):
        bill_payload.update({'subtotal': '20000', 'makingCharges': '2400.00', 'gst': 672, 'total': '23072.00'})
        response = client.post('/bills', json=bill_payload, headers=auth_headers)
        assert response.status_code == 201

    def test_mismatched_client_totals_rejected(self, client, auth_headers, bill_payload, session):
        bill_payload.update({'total': '23000.00'})
        response = client.post('/bills', json=bill_payload, headers=auth_headers)

        assert response.status_code == 422
        data = response.get_json()
        assert data['mismatches']['total'] == {'submitted': '23000.00', 'computed': '23072.00'}
        assert session.query(Bill).count() == 0

    @pytest.mark.parametrize('field', ['discount', 'paidAmount'])
    def test_out_of_range_amount_is_field_error(self, client, auth_headers, bill_payload, session, field):
        bill_payload[field] = '1e30'
        response = client.post('/bills', json=bill_payload, headers=auth_headers)

        assert response.status_code == 400
        assert field in response.get_json()['errors']
        assert session.query(Bill).count() == 0

    def test_out_of_range_client_total_is_mismatch(self, client, auth_headers, bill_payload, session):
        bill_payload['total'] = '1e50'
        response = client.post('/bills', json=bill_payload, headers=auth_headers)

        assert response.status_code == 422
        assert response.get_json()['mismatches']['total'] == {'submitted': '1e50', 'computed': '23072.00'}
        assert session.query(Bill).count() == 0

    def test_huge_quantity_rejected(self, client, auth_headers, bill_payload):
        bill_payload['items'][0]['quantity'] = 10 ** 12
        response = client.post('/bills', json=bill_payload, headers=auth_headers)

        assert response.status_code == 400
        assert 'items[0].quantity' in response.get_json()['errors']

    def test_validation_errors_are_field_level(self, client, auth_headers, bill_payload):
        bill_payload.update({
            'customerName': '  ',
            'customerEmail': 'not-an-email',
            'currency': 'USD',
            'makingChargePercent': '150',
            'paymentMethod': 'CHEQUE',
        })
        response = client.post('/bills', json=bill_payload, headers=auth_headers)

        assert response.status_code == 400
        errors = response.get_json()['errors']
        assert {'customerName', 'customerEmail', 'currency', 'makingChargePercent', 'paymentMethod'} <= set(errors)

    def test_quantity_below_one(self, client, auth_headers, bill_payload):
        bill_payload['items'][0]['quantity'] = 0
        response = client.post('/bills', json=bill_payload, headers=auth_headers)
        assert response.status_code == 400
        assert 'items[0].quantity' in response.get_json()['errors']

    def test_missing_price_for_currency(self, client, auth_headers, bill_payload, india_only_product):
        bill_payload['currency'] = 'BHD'
        bill_payload['items'] = [{'productId': india_only_product.id, 'quantity': 1}]
        response = client.post('/bills', json=bill_payload, headers=auth_headers)
        assert response.status_code == 400
        assert 'items[0].productId' in response.get_json()['errors']

    def test_unknown_and_inactive_products(self, client, auth_headers, bill_payload, inactive_product):
        bill_payload['items'] = [
            {'productId': 'does-not-exist', 'quantity': 1},
            {'productId': inactive_product.id, 'quantity': 1},
        ]
        errors = client.post('/bills', json=bill_payload, headers=auth_headers).get_json()['errors']
        assert 'items[0].productId' in errors
        assert 'items[1].productId' in errors

    def test_empty_items(self, client, auth_headers, bill_payload):
        bill_payload['items'] = []
        response = client.post('/bills', json=bill_payload, headers=auth_headers)
        assert response.status_code == 400
        assert 'items' in response.get_json()['errors']

    def test_non_json_body(self, client, auth_headers):
        response = client.post('/bills', data='customerName=x', headers=auth_headers)
        assert response.status_code == 400

    def test_bill_is_frozen_against_catalog_changes(self, client, auth_headers, bill_payload, session, inr_product):
        bill_id = client.post('/bills', json=bill_payload, headers=auth_headers).get_json()['id']

        from jewelbill.models import Product
        original_name = inr_product.name
        product = session.get(Product, inr_product.id)
        product.name = 'Renamed Chain'
        product.price_inr = Decimal('99999')
        session.commit()

        data = client.get(f'/bills/{bill_id}', headers=auth_headers).get_json()
        assert data['items'][0]['productName'] == original_name
        assert data['items'][0]['priceInr'] == '10000.00'
        assert data['total'] == '23072.00'

    def test_no_update_or_delete(self, client, auth_headers, bill_payload):
        bill_id = client.post('/bills', json=bill_payload, headers=auth_headers).get_json()['id']
        assert client.put(f'/bills/{bill_id}', json={}, headers=auth_headers).status_code == 405
        assert client.delete(f'/bills/{bill_id}', headers=auth_headers).status_code == 405


class TestCalculate:
    """POST /bills/calculate."""

    def test_preview_does_not_persist(self, client, auth_headers, bill_payload, session):
        response = client.post('/bills/calculate', json=bill_payload, headers=auth_headers)

        assert response.status_code == 200
        data = response.get_json()
        assert data['total'] == '23072.00'
        assert data['items'][0]['itemSubtotal'] == '20000.00'
        assert data['items'][0]['sgst'] == '336.00'
        assert 'billNumber' not in data
        assert session.query(Bill).count() == 0


class TestReadBills:
    """GET /bills and friends."""

    def _store(self, session, number, name, created_at):
        bill = Bill(
            bill_number=number, customer_name=name, customer_email='', customer_phone='9840012345',
            customer_address='', currency='INR', subtotal=Decimal('100'), making_charges=Decimal('12'),
            gst=Decimal('3.36'), total=Decimal('115.36'), paid_amount=Decimal('115.36'),
            created_at=created_at
        )
        bill.items.append(BillItem(
            position=0, product_id='p-1', product_name='Stud', quantity=1, price_inr=Decimal('100'),
            making_charges=Decimal('12'), sgst=Decimal('1.68'), cgst=Decimal('1.68'), total=Decimal('115.36')
        ))
        session.add(bill)
        session.commit()
        return bill.id

    def test_get_by_id(self, client, auth_headers, bill_payload):
        created = client.post('/bills', json=bill_payload, headers=auth_headers).get_json()
        response = client.get(f"/bills/{created['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert response.get_json() == created

    def test_unknown_id(self, client, auth_headers):
        response = client.get('/bills/00000000-0000-0000-0000-000000000000', headers=auth_headers)
        assert response.status_code == 404

    def test_get_by_number(self, client, auth_headers, session):
        bill_id = self._store(session, 'PJ/20250819-003', 'Meena', datetime(2025, 8, 19, 10))
        response = client.get('/bills/by-number/PJ/20250819-003', headers=auth_headers)
        assert response.status_code == 200
        assert response.get_json()['id'] == bill_id

    def test_list_newest_first(self, client, auth_headers, session):
        self._store(session, 'PJ/20250818-001', 'Older', datetime(2025, 8, 18, 10))
        self._store(session, 'PJ/20250819-001', 'Newer', datetime(2025, 8, 19, 10))
        data = client.get('/bills', headers=auth_headers).get_json()
        assert [bill['customerName'] for bill in data] == ['Newer', 'Older']

    def test_search_by_customer_name(self, client, auth_headers, session):
        self._store(session, 'PJ/20250819-001', 'Lakshmi Narayanan', datetime(2025, 8, 19, 10))
        self._store(session, 'PJ/20250819-002', 'Arun Kumar', datetime(2025, 8, 19, 11))
        data = client.get('/bills?search=lakshmi', headers=auth_headers).get_json()
        assert [bill['billNumber'] for bill in data] == ['PJ/20250819-001']

    def test_search_treats_wildcards_literally(self, client, auth_headers, session):
        self._store(session, 'PJ/20250819-001', 'Arun Kumar', datetime(2025, 8, 19, 10))
        assert client.get('/bills?search=%25', headers=auth_headers).get_json() == []

    def test_date_range_is_inclusive(self, client, auth_headers, session):
        self._store(session, 'PJ/20250817-001', 'Before', datetime(2025, 8, 17, 23, 59))
        self._store(session, 'PJ/20250818-001', 'Start', datetime(2025, 8, 18, 0, 0))
        self._store(session, 'PJ/20250819-001', 'End', datetime(2025, 8, 19, 23, 30))
        self._store(session, 'PJ/20250820-001', 'After', datetime(2025, 8, 20, 0, 0))

        data = client.get('/bills?startDate=2025-08-18&endDate=2025-08-19', headers=auth_headers).get_json()
        assert [bill['customerName'] for bill in data] == ['End', 'Start']

    def test_bad_date_range(self, client, auth_headers):
        assert client.get('/bills?startDate=2025-08-18', headers=auth_headers).status_code == 400
        assert client.get('/bills?startDate=18/08/2025&endDate=2025-08-19', headers=auth_headers).status_code == 400
        assert client.get('/bills?startDate=2025-08-19&endDate=2025-08-18', headers=auth_headers).status_code == 400


class TestInvoiceDocuments:
    """GET /bills/<id>/pdf and /preview."""

    def test_pdf_download(self, client, auth_headers, bill_payload):
        created = client.post('/bills', json=bill_payload, headers=auth_headers).get_json()
        response = client.get(f"/bills/{created['id']}/pdf", headers=auth_headers)

        assert response.status_code == 200
        assert response.mimetype == 'application/pdf'
        disposition = response.headers['Content-Disposition']
        assert disposition.startswith('attachment')
        assert 'Asha_Rao_PJ_' in disposition
        assert response.data.startswith(b'%PDF')

    def test_pdf_unknown_bill(self, client, auth_headers):
        assert client.get('/bills/missing/pdf', headers=auth_headers).status_code == 404

    def test_pdf_of_malformed_bill(self, client, auth_headers, session):
        bill = Bill(
            bill_number='PJ/20250819-009', customer_name='', customer_email='', customer_phone='',
            customer_address='', currency='INR', subtotal=Decimal('1'), making_charges=Decimal('0'),
            total=Decimal('1'), paid_amount=Decimal('1'), created_at=datetime(2025, 8, 19, 10)
        )
        session.add(bill)
        session.commit()
        response = client.get(f'/bills/{bill.id}/pdf', headers=auth_headers)
        assert response.status_code == 500
        assert response.get_json()['status'] == 'error'

    def test_html_preview(self, client, auth_headers, bill_payload):
        created = client.post('/bills', json=bill_payload, headers=auth_headers).get_json()
        response = client.get(f"/bills/{created['id']}/preview", headers=auth_headers)

        assert response.status_code == 200
        assert response.mimetype == 'text/html'
        html = response.get_data(as_text=True)
        assert 'TAX INVOICE' in html
        assert created['billNumber'] in html
        assert '₹ 23,072' in html
        assert 'SGST' in html
        assert 'Rupees twenty three thousand seventy two Only' in html


class TestMetrics:

    def test_bill_counter_exposed(self, client, auth_headers, bill_payload):
        client.post('/bills', json=bill_payload, headers=auth_headers)
        response = client.get('/metrics')
        assert response.status_code == 200
        assert b'bills_created_total{currency="INR"}' in response.data
