import pytest


@pytest.fixture(autouse=True)
def _fresh_config():
    # Config is module-global; start every test from defaults
    from ldeaths_forecaster_src.config_utils import reset_config

    reset_config()
    yield
    reset_config()


@pytest.fixture(scope="session")
def ldeaths():
    from ldeaths_forecaster_src.data_utils import load_ldeaths_series

    return load_ldeaths_series()


@pytest.fixture(scope="session")
def train_test(ldeaths):
    from ldeaths_forecaster_src.data_utils import split_train_test

    return split_train_test(ldeaths, "1978-12")
