"""
Metal rates: live spot prices with hardcoded fallbacks, upserted per
(metal, purity, market), served through a staleness-aware cache and kept
fresh by a background refresh thread.
"""
import logging
import threading
import time
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple

import requests
from flask import Flask
from sqlalchemy.orm import Session

from jewelbill.database import dialect_insert, get_session
from jewelbill.exceptions import ValidationError
from jewelbill.models import Market, Metal, MetalRate
from jewelbill.services.cache_service import get_cache

logger = logging.getLogger(__name__)

OUNCE_TO_GRAMS = Decimal('31.1035')
USD_TO_INR_FALLBACK = Decimal('83.5')
USD_TO_BHD_FALLBACK = Decimal('0.376')
BHD_TO_INR = Decimal('230')

# Per-gram prices used when the spot source is unreachable
FALLBACK_RATES = {
    Market.INDIA: {
        (Metal.GOLD, '24K'): Decimal('10075'),
        (Metal.GOLD, '22K'): Decimal('9235'),
        (Metal.GOLD, '18K'): Decimal('7556'),
        (Metal.SILVER, 'PURE'): Decimal('116'),
    },
    Market.BAHRAIN: {
        (Metal.GOLD, '24K'): Decimal('40.80'),
        (Metal.GOLD, '22K'): Decimal('38.20'),
        (Metal.GOLD, '18K'): Decimal('31.30'),
        (Metal.SILVER, 'PURE'): Decimal('0.46'),
    },
}

GOLD_PURITY_FACTORS = {
    '24K': Decimal('1'),
    '22K': Decimal('22') / Decimal('24'),
    '18K': Decimal('18') / Decimal('24'),
}

SOURCE_LIVE = 'live-market-data'
SOURCE_FALLBACK = 'fallback'
CACHE_MODULE = 'metal_rates'
VERSION_MODULE = 'metal_rates_version'
VERSION_KEY = 'current'

_INR = Decimal('0.01')
_BHD = Decimal('0.001')
_USD = Decimal('0.01')


def _q(value: Decimal, quantum: Decimal) -> Decimal:
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def parse_market(value) -> Optional[Market]:
    """Market from a query string value; None/'' means all markets."""
    if value is None or value == '':
        return None
    try:
        return Market(str(value).strip().upper())
    except ValueError:
        raise ValidationError({'market': 'Market must be INDIA or BAHRAIN'}, message='Invalid market')


def fetch_spot_prices(url: str, timeout: float) -> Optional[Dict[str, Decimal]]:
    """
    USD-per-ounce spot prices for gold and silver.

    Accepts either {"gold": .., "silver": ..} or a list of single-key
    objects. Returns None when the source is unreachable or incomplete.
    """
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning(f"[RATES] Spot source unavailable: {e}")
        return None

    if isinstance(data, list):
        merged = {}
        for entry in data:
            if isinstance(entry, dict):
                merged.update(entry)
        data = merged
    if not isinstance(data, dict):
        logger.warning("[RATES] Spot source returned an unexpected payload")
        return None

    try:
        gold = Decimal(str(data['gold']))
        silver = Decimal(str(data['silver']))
    except (KeyError, ArithmeticError, ValueError):
        logger.warning("[RATES] Spot payload is missing gold/silver prices")
        return None
    if gold <= 0 or silver <= 0:
        return None
    return {'gold': gold, 'silver': silver}


def fetch_exchange_rates(url: str, timeout: float) -> Tuple[Decimal, Decimal]:
    """USD->INR and USD->BHD, falling back to fixed rates."""
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
        rates = response.json().get('rates', {})
        inr = Decimal(str(rates.get('INR') or USD_TO_INR_FALLBACK))
        bhd = Decimal(str(rates.get('BHD') or USD_TO_BHD_FALLBACK))
        return inr, bhd
    except (requests.RequestException, ValueError, AttributeError, ArithmeticError) as e:
        logger.warning(f"[RATES] Exchange source unavailable, using fallback rates: {e}")
        return USD_TO_INR_FALLBACK, USD_TO_BHD_FALLBACK


def live_rate_rows(spot: Dict[str, Decimal], usd_to_inr: Decimal, usd_to_bhd: Decimal) -> List[Dict[str, Any]]:
    """Per-gram rows for both markets from USD-per-ounce spot prices."""
    per_gram = {
        (Metal.GOLD, purity): spot['gold'] / OUNCE_TO_GRAMS * factor
        for purity, factor in GOLD_PURITY_FACTORS.items()
    }
    per_gram[(Metal.SILVER, 'PURE')] = spot['silver'] / OUNCE_TO_GRAMS

    rows = []
    for market in Market:
        for (metal, purity), usd in per_gram.items():
            rows.append({
                'metal': metal.value,
                'purity': purity,
                'market': market.value,
                'price_per_gram_inr': _q(usd * usd_to_inr, _INR),
                'price_per_gram_bhd': _q(usd * usd_to_bhd, _BHD),
                'price_per_gram_usd': _q(usd, _USD),
                'source': SOURCE_LIVE,
            })
    return rows


def fallback_rate_rows() -> List[Dict[str, Any]]:
    """Rows from the hardcoded market tables."""
    rows = []
    for (metal, purity), inr in FALLBACK_RATES[Market.INDIA].items():
        rows.append({
            'metal': metal.value,
            'purity': purity,
            'market': Market.INDIA.value,
            'price_per_gram_inr': _q(inr, _INR),
            'price_per_gram_bhd': _q(inr / BHD_TO_INR, _BHD),
            'price_per_gram_usd': _q(inr / USD_TO_INR_FALLBACK, _USD),
            'source': SOURCE_FALLBACK,
        })
    for (metal, purity), bhd in FALLBACK_RATES[Market.BAHRAIN].items():
        rows.append({
            'metal': metal.value,
            'purity': purity,
            'market': Market.BAHRAIN.value,
            'price_per_gram_inr': _q(bhd * BHD_TO_INR, Decimal('1')),
            'price_per_gram_bhd': _q(bhd, _BHD),
            'price_per_gram_usd': _q(bhd / USD_TO_BHD_FALLBACK, _USD),
            'source': SOURCE_FALLBACK,
        })
    return rows


def upsert_rate(session: Session, row: Dict[str, Any], now: datetime) -> None:
    """Insert or overwrite the row for (metal, purity, market)."""
    insert = dialect_insert(session)
    values = dict(row, last_updated=now)
    statement = insert(MetalRate).values(created_at=now, **values)
    session.execute(statement.on_conflict_do_update(
        index_elements=['metal', 'purity', 'market'],
        set_={
            'price_per_gram_inr': statement.excluded.price_per_gram_inr,
            'price_per_gram_bhd': statement.excluded.price_per_gram_bhd,
            'price_per_gram_usd': statement.excluded.price_per_gram_usd,
            'source': statement.excluded.source,
            'last_updated': statement.excluded.last_updated,
        }
    ))


def refresh_metal_rates(session: Session, config) -> str:
    """
    Fetch current rates and upsert them.

    Never fails because of the remote source: an unreachable spot source
    means the fallback tables are written instead.

    Returns:
        str: the source that was written (live-market-data or fallback)
    """
    timeout = config.get('METAL_RATES_HTTP_TIMEOUT', 10)
    spot = fetch_spot_prices(config['METAL_SPOT_API_URL'], timeout)
    if spot is not None:
        usd_to_inr, usd_to_bhd = fetch_exchange_rates(config['EXCHANGE_RATE_API_URL'], timeout)
        rows = live_rate_rows(spot, usd_to_inr, usd_to_bhd)
    else:
        rows = fallback_rate_rows()

    now = datetime.now(timezone.utc)
    try:
        for row in rows:
            upsert_rate(session, row, now)
        session.commit()
    except Exception:
        session.rollback()
        raise

    source = rows[0]['source']
    rate_cache.mark_refreshed(now)
    logger.info(f"[RATES] Upserted {len(rows)} rates from {source}")
    return source


def get_latest_rates(session: Session, market: Optional[Market] = None) -> List[MetalRate]:
    """Stored rates, most recently updated first."""
    query = session.query(MetalRate)
    if market is not None:
        query = query.filter(MetalRate.market == market.value)
    return query.order_by(MetalRate.last_updated.desc(), MetalRate.metal, MetalRate.purity).all()


class MetalRateCache:
    """
    Read-through cache of serialized rates per market.

    Entries are kept in process and, when Redis is available, shared across
    workers. Every refresh bumps a version counter in Redis; a local entry
    loaded under an older version is dropped on the next read, so a refresh
    on one worker reaches all of them. Shared entries are keyed by version,
    which keeps a slow reader from re-publishing pre-refresh rows. Without
    Redis the version is None and only the local entries apply. An entry
    older than the staleness threshold is reloaded from the database.
    """

    def __init__(self, stale_seconds: int = 12 * 60 * 60):
        self.stale_seconds = stale_seconds
        self.last_refresh: Optional[datetime] = None
        self._entries: Dict[str, Tuple[float, Optional[int], List[Dict[str, Any]]]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(market: Optional[Market]) -> str:
        return market.value if market else 'ALL'

    @staticmethod
    def _shared_version() -> Optional[int]:
        shared = get_cache()
        if not shared or not shared.is_available():
            return None
        return shared.get(VERSION_MODULE, VERSION_KEY) or 0

    def is_stale(self, market: Optional[Market] = None, version: Optional[int] = None) -> bool:
        with self._lock:
            entry = self._entries.get(self._key(market))
        if entry is None or entry[1] != version:
            return True
        return time.monotonic() - entry[0] > self.stale_seconds

    def get(self, session: Session, market: Optional[Market] = None) -> List[Dict[str, Any]]:
        key = self._key(market)
        version = self._shared_version()
        if not self.is_stale(market, version):
            with self._lock:
                return self._entries[key][2]

        shared = get_cache()
        shared_key = f'{version}:{key}'
        rates = shared.get(CACHE_MODULE, shared_key) if version is not None else None
        if rates is None:
            rates = [rate.to_dict() for rate in get_latest_rates(session, market)]
            if version is not None:
                shared.set(CACHE_MODULE, shared_key, rates, ttl=self.stale_seconds)
        with self._lock:
            self._entries[key] = (time.monotonic(), version, rates)
        return rates

    def invalidate(self) -> None:
        """Drop local entries and, through Redis, every other worker's."""
        with self._lock:
            self._entries.clear()
        shared = get_cache()
        if shared:
            shared.invalidate_module(CACHE_MODULE)
            shared.incr(VERSION_MODULE, VERSION_KEY)

    def mark_refreshed(self, when: datetime) -> None:
        self.last_refresh = when
        self.invalidate()


rate_cache = MetalRateCache()


class RateRefreshScheduler(threading.Thread):
    """Daemon thread that refreshes metal rates on a fixed interval."""

    def __init__(self, app: Flask, interval_seconds: int):
        super().__init__(name='metal-rate-refresh', daemon=True)
        self.app = app
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()

    def run_once(self) -> None:
        with self.app.app_context():
            session = get_session()
            try:
                refresh_metal_rates(session, self.app.config)
            except Exception as e:
                logger.error(f"[RATES] Scheduled refresh failed: {e}")
            finally:
                session.remove()

    def run(self) -> None:
        logger.info(f"[RATES] Scheduler started (every {self.interval_seconds}s)")
        self.run_once()
        while not self._stop_event.wait(self.interval_seconds):
            self.run_once()

    def stop(self) -> None:
        self._stop_event.set()


def start_rate_scheduler(app: Flask) -> RateRefreshScheduler:
    """Start the refresh thread for this process."""
    rate_cache.stale_seconds = app.config.get('METAL_RATES_STALE_SECONDS', rate_cache.stale_seconds)
    scheduler = RateRefreshScheduler(app, app.config['METAL_RATES_REFRESH_SECONDS'])
    scheduler.start()
    app.extensions['metal_rate_scheduler'] = scheduler
    return scheduler
