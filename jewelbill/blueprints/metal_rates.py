"""Metal rates blueprint."""
from flask import Blueprint, current_app, jsonify, request

from jewelbill.database import get_session
from jewelbill.middleware import require_admin
from jewelbill.services.metal_rates_service import (
    get_latest_rates, parse_market, rate_cache, refresh_metal_rates
)

metal_rates_bp = Blueprint('metal_rates', __name__, url_prefix='/metal-rates')


@metal_rates_bp.route('', methods=['GET'])
def index():
    """Current per-gram rates, optionally for one market (?market=INDIA|BAHRAIN)."""
    market = parse_market(request.args.get('market'))
    return jsonify(rate_cache.get(get_session(), market))


@metal_rates_bp.route('/update', methods=['POST'])
@require_admin
def update():
    """Force a refresh from the rate source (falls back to fixed rates)."""
    db_session = get_session()
    source = refresh_metal_rates(db_session, current_app.config)
    rates = get_latest_rates(db_session)
    current_app.logger.info(f"[RATES] Manual refresh ({source})")
    return jsonify({
        'message': 'Metal rates updated successfully',
        'source': source,
        'rates': [rate.to_dict() for rate in rates],
    })
