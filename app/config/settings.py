import yaml
import os
from dotenv import load_dotenv

DEFAULT_CONFIG = {
    'klines': {
        'base_url': 'https://data.binance.vision',
        'symbol': 'ETHBUSD',
        'resolution': '1m',
        'cache_dir': '.cache/klines',
        'timeout': 30
    },
    'simulation': {
        'conversion_rate': 7.1,
        'asset_multiplier': 3,
        'progress': 1,
        'strict': True,
        'utc_offset_hours': 8,
        'num_workers': 1
    }
}


def load_config(path='config.yaml'):
    load_dotenv()

    config = {section: dict(values) for section, values in DEFAULT_CONFIG.items()}
    try:
        with open(path) as f:
            loaded = yaml.safe_load(f) or {}
        for section, values in loaded.items():
            config.setdefault(section, {}).update(values or {})
    except FileNotFoundError:
        pass

    # Override with environment variables
    config['klines']['base_url'] = os.getenv('KLINES_BASE_URL', config['klines']['base_url'])
    config['klines']['symbol'] = os.getenv('KLINES_SYMBOL', config['klines']['symbol'])
    config['klines']['cache_dir'] = os.getenv('KLINES_CACHE_DIR', config['klines']['cache_dir'])
    config['simulation']['conversion_rate'] = float(
        os.getenv('CONVERSION_RATE', config['simulation']['conversion_rate']))

    return config
