import logging

from flask import Blueprint, current_app, jsonify, request

from app.core.klines import duration_days, get_klines_store
from gridsim.backtester import SummaryConfig
from gridsim.exceptions import DataUnavailable, InvalidConfiguration
from gridsim.optimizer import SweepRunner, build_report
from gridsim.strategy import RunParameters
from gridsim.visualization import TradingVisualizer

logger = logging.getLogger(__name__)

simulate_bp = Blueprint('simulate', __name__)

REQUIRED_PARAMETERS = ['start', 'end', 'principal', 'floor_price']
FALSE_VALUES = ('0', 'false', 'no', 'off')


def _number(name, default=None):
    value = request.args.get(name)
    if value in (None, ''):
        return default
    try:
        number = float(value)
    except ValueError:
        raise InvalidConfiguration(f"Invalid {name} parameter: {value}")
    return int(number) if number.is_integer() else number


def _flag(name, default):
    value = request.args.get(name)
    if value is None:
        return default
    return value.strip().lower() not in FALSE_VALUES


@simulate_bp.route('/simulate')
def simulate():
    """Simulate grid trading down to an expected floor price"""
    for name in REQUIRED_PARAMETERS:
        if not request.args.get(name):
            return jsonify({'errMessage': f'Missing {name} parameter'}), 400
    if not request.args.get('interval') and not (
            request.args.get('start_interval') and request.args.get('end_interval')):
        return jsonify({
            'errMessage': 'Missing interval (Or both start_interval, end_interval) parameter'
        }), 400

    settings = current_app.config['simulation']
    start = request.args['start']
    end = request.args['end']

    try:
        principal = _number('principal')
        floor_price = _number('floor_price')
        interval = _number('interval')
        start_interval = _number('start_interval')
        end_interval = _number('end_interval')
        step = _number('step', 1)
        progress = _number('progress', float(settings.get('progress', 1)))
        strict = _flag('strict', bool(settings.get('strict', True)))
        chart = _flag('chart', False)

        duration = duration_days(start, end)
        candles = get_klines_store().get_candles(start, end)

        summary_config = SummaryConfig.from_config(current_app.config)
        base_params = RunParameters.derive(
            candles,
            principal=principal,
            floor_price=floor_price,
            duration=duration,
            asset_multiplier=summary_config.asset_multiplier,
            progress=progress,
            strict=strict,
            utc_offset_hours=settings.get('utc_offset_hours', 0)
        )
        logger.info("Simulating %s ~ %s: start price %s, deficit %s",
                    start, end, base_params.start_price, base_params.deficit)

        runner = SweepRunner(candles, base_params, summary_config)
        results = runner.run(
            interval=interval,
            start_interval=start_interval,
            end_interval=end_interval,
            step=step,
            num_workers=int(settings.get('num_workers', 1))
        )

        if chart and interval:
            return TradingVisualizer(candles, results[0]).to_html()

        report = build_report(candles, base_params, start, end, results,
                              interval=interval,
                              start_interval=start_interval,
                              end_interval=end_interval)
        return jsonify(report.to_dict())

    except InvalidConfiguration as e:
        logger.warning("Invalid simulation request: %s", e)
        return jsonify({'errMessage': str(e), 'interval': e.interval}), 400
    except DataUnavailable as e:
        logger.warning("Klines not found: %s", e)
        return jsonify({'errMessage': 'Not Found', 'date': e.date}), 404
    except Exception:
        logger.exception("Error running simulation")
        return jsonify({'errMessage': 'Internal Server Error'}), 500
