from pathlib import Path
from types import SimpleNamespace

import pytest

from ldeaths_forecaster_src import config_utils
from ldeaths_forecaster_src.config_utils import (
    ConfigurationManager, get_config_value, initialize_config
)
from ldeaths_forecaster_src.parsing_utils import (
    parse_intervals_arg, resolve_search_bounds, validate_criterion, validate_log_level,
    validate_search_mode
)


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "model.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_bundled_config_loads_and_validates():
    cfg = initialize_config()
    assert cfg is not None
    assert cfg.validate_configuration() == {}
    assert cfg.get("model.search_space.max_order") == 5
    assert cfg.get("forecast.intervals") == [80, 95]
    assert cfg.get("model.nope.deeper", "fallback") == "fallback"


def test_precedence_cli_then_yaml_then_default(tmp_path: Path):
    initialize_config(_write(tmp_path, "model:\n  criterion: bic\n"))

    args = SimpleNamespace(criterion="aicc")
    assert get_config_value("model.criterion", "aic", args, "criterion") == "aicc"
    # an unset CLI option falls through to the file
    assert get_config_value("model.criterion", "aic", SimpleNamespace(criterion=None), "criterion") == "bic"
    assert get_config_value("model.maxiter", 200, args, "maxiter") == 200


def test_missing_file_uses_defaults(tmp_path: Path):
    assert initialize_config(tmp_path / "absent.yaml") is None
    assert config_utils.config_manager is None
    assert get_config_value("model.criterion", "aic") == "aic"


def test_invalid_yaml_is_logged_not_raised(tmp_path: Path, caplog):
    path = _write(tmp_path, "model: [unclosed\n")
    assert initialize_config(path) is None
    assert "Failed to initialize configuration" in caplog.text

    assert initialize_config(_write(tmp_path, "- just\n- a list\n")) is None


def test_validation_reports_bad_values():
    cfg = ConfigurationManager({
        "model": {
            "fixed_parameters": {"d": -1, "D": 1, "s": 12},
            "search_space": {"max_p": "five"},
            "criterion": "hqic",
        }
    })
    errors = cfg.validate_configuration()
    assert set(errors) == {"model.fixed_parameters", "model.search_space", "model"}


def test_search_bounds_from_cli_and_yaml(tmp_path: Path):
    assert resolve_search_bounds().max_p == 5

    initialize_config(_write(tmp_path, "model:\n  search_space:\n    max_p: 3\n    max_order: 4\n"))
    bounds = resolve_search_bounds(SimpleNamespace(max_p=None, max_q=1, max_P=None, max_Q=None, max_order=None))
    assert (bounds.max_p, bounds.max_q, bounds.max_P, bounds.max_Q, bounds.max_order) == (3, 1, 2, 2, 4)


@pytest.mark.parametrize("raw,expected", [
    ("80,95", [80, 95]),
    ("95, 80, 80", [80, 95]),
    (None, [80, 95]),
    ([90], [90]),
])
def test_parse_intervals(raw, expected):
    assert parse_intervals_arg(raw) == expected


@pytest.mark.parametrize("raw", ["80,abc", "0", "100", ","])
def test_parse_intervals_rejects(raw):
    with pytest.raises(ValueError):
        parse_intervals_arg(raw)


def test_mode_criterion_and_log_level_validation():
    assert validate_search_mode("BOTH") == ["exhaustive", "stepwise"]
    assert validate_search_mode("stepwise") == ["stepwise"]
    assert validate_criterion("AICc") == "aicc"
    assert validate_log_level("debug") == "DEBUG"
    with pytest.raises(ValueError):
        validate_search_mode("annealing")
    with pytest.raises(ValueError):
        validate_criterion("hqic")
    with pytest.raises(ValueError):
        validate_log_level("LOUD")
