import logging

from flask import Blueprint, jsonify, request

from app.core.klines import get_klines_store
from gridsim.exceptions import DataUnavailable, InvalidConfiguration

logger = logging.getLogger(__name__)

chart_bp = Blueprint('chart', __name__)


@chart_bp.route('/klines')
def get_klines():
    start = request.args.get('from')
    if not start:
        return jsonify({'errMessage': 'Missing from parameter'}), 400
    end = request.args.get('to', start)

    try:
        candles = get_klines_store().get_candles(start, end)
        logger.info("Serving %d candles from %s to %s", len(candles), start, end)
        return jsonify({'klines': candles.to_rows()})
    except InvalidConfiguration as e:
        return jsonify({'errMessage': str(e)}), 400
    except DataUnavailable as e:
        logger.warning("Klines not found: %s", e)
        return jsonify({'errMessage': 'Not Found', 'date': e.date}), 404
    except Exception:
        logger.exception("Error fetching klines")
        return jsonify({'errMessage': 'Internal Server Error'}), 500
