"""Bills blueprint: create, calculate, read, PDF and HTML preview."""
from flask import Blueprint, current_app, jsonify, render_template, request, send_file

from jewelbill.database import get_session
from jewelbill.exceptions import ValidationError
from jewelbill.middleware import require_admin
from jewelbill.services.bill_service import (
    bills_by_date_range,
    create_bill,
    get_bill,
    get_bill_by_number,
    list_bills,
    parse_date,
    preview_bill,
    search_bills,
)
from jewelbill.services.invoice_pdf import pdf_filename, render_invoice_pdf
from jewelbill.services.invoice_view import build_invoice_view

bills_bp = Blueprint('bills', __name__, url_prefix='/bills')


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError({'__all__': 'Request body must be JSON'})
    return data


@bills_bp.route('', methods=['POST'])
@require_admin
def create():
    """Create a bill. Totals are computed server-side."""
    bill = create_bill(get_session(), _json_body(), current_app.config)
    return jsonify(bill.to_dict()), 201


@bills_bp.route('/calculate', methods=['POST'])
@require_admin
def calculate():
    """Compute a bill without storing it (form preview)."""
    computed = preview_bill(get_session(), _json_body(), current_app.config)
    return jsonify(computed.to_dict())


@bills_bp.route('', methods=['GET'])
@require_admin
def index():
    """List bills: ?search=<name>, or ?startDate=&endDate= (inclusive), else all."""
    db_session = get_session()
    search = request.args.get('search', '').strip()
    start = request.args.get('startDate', '').strip()
    end = request.args.get('endDate', '').strip()

    if start or end:
        if not (start and end):
            raise ValidationError(
                {'startDate' if not start else 'endDate': 'Both startDate and endDate are required'},
                message='Invalid date range'
            )
        bills = bills_by_date_range(db_session, parse_date(start, 'startDate'), parse_date(end, 'endDate'))
    elif search:
        bills = search_bills(db_session, search)
    else:
        bills = list_bills(db_session)

    return jsonify([bill.to_dict() for bill in bills])


@bills_bp.route('/<bill_id>', methods=['GET'])
@require_admin
def show(bill_id):
    return jsonify(get_bill(get_session(), bill_id).to_dict())


@bills_bp.route('/by-number/<path:bill_number>', methods=['GET'])
@require_admin
def show_by_number(bill_number):
    return jsonify(get_bill_by_number(get_session(), bill_number).to_dict())


@bills_bp.route('/<bill_id>/pdf', methods=['GET'])
@require_admin
def download_pdf(bill_id):
    """Download the tax invoice PDF."""
    bill = get_bill(get_session(), bill_id)
    pdf_buffer = render_invoice_pdf(bill)
    return send_file(
        pdf_buffer,
        mimetype='application/pdf',
        as_attachment=True,
        download_name=pdf_filename(bill)
    )


@bills_bp.route('/<bill_id>/preview', methods=['GET'])
@require_admin
def preview(bill_id):
    """HTML rendering of the tax invoice."""
    bill = get_bill(get_session(), bill_id)
    return render_template('bills/preview.html', invoice=build_invoice_view(bill))
