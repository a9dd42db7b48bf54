from app.config.settings import DEFAULT_CONFIG, load_config


def test_defaults_when_file_is_missing(tmp_path, monkeypatch):
    for name in ('KLINES_BASE_URL', 'KLINES_SYMBOL', 'KLINES_CACHE_DIR', 'CONVERSION_RATE'):
        monkeypatch.delenv(name, raising=False)
    config = load_config(str(tmp_path / 'missing.yaml'))

    assert config == DEFAULT_CONFIG
    assert config['simulation'] is not DEFAULT_CONFIG['simulation']


def test_yaml_overrides_defaults(tmp_path, monkeypatch):
    monkeypatch.delenv('KLINES_SYMBOL', raising=False)
    path = tmp_path / 'config.yaml'
    path.write_text("klines:\n  symbol: BTCUSDT\nsimulation:\n  strict: false\n")
    config = load_config(str(path))

    assert config['klines']['symbol'] == 'BTCUSDT'
    assert config['klines']['resolution'] == '1m'
    assert config['simulation']['strict'] is False
    assert config['simulation']['conversion_rate'] == 7.1


def test_environment_overrides_yaml(tmp_path, monkeypatch):
    monkeypatch.setenv('KLINES_CACHE_DIR', str(tmp_path / 'klines'))
    monkeypatch.setenv('CONVERSION_RATE', '6.9')
    config = load_config(str(tmp_path / 'missing.yaml'))

    assert config['klines']['cache_dir'] == str(tmp_path / 'klines')
    assert config['simulation']['conversion_rate'] == 6.9
