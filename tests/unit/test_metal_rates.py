"""
Unit tests for the metal rate source, upserts and cache.
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import patch, MagicMock

import requests

from jewelbill.models import Market, MetalRate
from jewelbill.services import metal_rates_service
from jewelbill.services.metal_rates_service import (
    MetalRateCache, SOURCE_FALLBACK, SOURCE_LIVE,
    fallback_rate_rows, fetch_exchange_rates, fetch_spot_prices, refresh_metal_rates
)


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def _live_get(url, timeout):
    if 'spot' in url:
        return _response({'gold': 2000, 'silver': 25})
    return _response({'rates': {'INR': 80, 'BHD': 0.4}})


class TestSources:

    def test_spot_prices(self):
        with patch.object(metal_rates_service.requests, 'get', return_value=_response([{'gold': 2050.5}, {'silver': 26}])) as get:
            spot = fetch_spot_prices('https://example.test/spot', 5)
        assert spot == {'gold': Decimal('2050.5'), 'silver': Decimal('26')}
        get.assert_called_once_with('https://example.test/spot', timeout=5)

    def test_spot_unreachable(self):
        with patch.object(metal_rates_service.requests, 'get', side_effect=requests.ConnectionError('down')):
            assert fetch_spot_prices('https://example.test/spot', 5) is None

    def test_spot_incomplete(self):
        with patch.object(metal_rates_service.requests, 'get', return_value=_response({'gold': 2000})):
            assert fetch_spot_prices('https://example.test/spot', 5) is None

    def test_exchange_fallback(self):
        with patch.object(metal_rates_service.requests, 'get', side_effect=requests.Timeout('slow')):
            assert fetch_exchange_rates('https://example.test/fx', 5) == (Decimal('83.5'), Decimal('0.376'))

    def test_fallback_table(self):
        rows = {(r['metal'], r['purity'], r['market']): r for r in fallback_rate_rows()}
        assert len(rows) == 8
        assert rows[('GOLD', '22K', 'INDIA')]['price_per_gram_inr'] == Decimal('9235.00')
        assert rows[('GOLD', '24K', 'BAHRAIN')]['price_per_gram_bhd'] == Decimal('40.800')
        assert rows[('GOLD', '24K', 'BAHRAIN')]['price_per_gram_inr'] == Decimal('9384')


class TestRefresh:

    def test_live_refresh(self, app, session):
        with patch.object(metal_rates_service.requests, 'get', side_effect=_live_get):
            source = refresh_metal_rates(session, app.config)

        assert source == SOURCE_LIVE
        gold = session.query(MetalRate).filter_by(metal='GOLD', purity='24K', market='INDIA').one()
        # 2000 USD/oz / 31.1035 g = 64.30 USD/g
        assert gold.price_per_gram_usd == Decimal('64.30')
        assert gold.price_per_gram_inr == Decimal('5144.12')

    def test_unreachable_source_writes_fallback(self, app, session):
        with patch.object(metal_rates_service.requests, 'get', side_effect=requests.ConnectionError('down')):
            source = refresh_metal_rates(session, app.config)

        assert source == SOURCE_FALLBACK
        assert session.query(MetalRate).count() == 8

    def test_refresh_is_idempotent(self, app, session):
        """Repeated refreshes overwrite the same (metal, purity, market) rows."""
        with patch.object(metal_rates_service.requests, 'get', side_effect=requests.ConnectionError('down')):
            refresh_metal_rates(session, app.config)
        with patch.object(metal_rates_service.requests, 'get', side_effect=_live_get):
            refresh_metal_rates(session, app.config)

        assert session.query(MetalRate).count() == 8
        sources = {rate.source for rate in session.query(MetalRate).all()}
        assert sources == {SOURCE_LIVE}


class TestCache:

    def test_reads_are_cached_until_invalidated(self, app, session):
        """Without Redis, another instance's refresh does not reach this one."""
        cache = MetalRateCache(stale_seconds=3600)
        assert cache.get(session, Market.INDIA) == []
        assert cache.is_stale(Market.INDIA) is False

        with patch.object(metal_rates_service.requests, 'get', side_effect=requests.ConnectionError('down')):
            refresh_metal_rates(session, app.config)
        # Still the cached snapshot
        assert cache.get(session, Market.INDIA) == []

        cache.invalidate()
        assert cache.last_refresh is None
        assert len(cache.get(session, Market.INDIA)) == 4

    def test_refresh_marks_process_cache(self, app, session):
        started = datetime.now(timezone.utc)
        with patch.object(metal_rates_service.requests, 'get', side_effect=requests.ConnectionError('down')):
            refresh_metal_rates(session, app.config)
        assert metal_rates_service.rate_cache.last_refresh >= started

    def test_stale_entries_reload(self, app, session):
        cache = MetalRateCache(stale_seconds=-1)
        assert cache.get(session, None) == []
        assert cache.is_stale(None) is True
