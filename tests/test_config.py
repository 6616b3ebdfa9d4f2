import pytest

from chainflow.config import AppConfig, Config, EngineSettings, config, load_config
from chainflow.logger import define_log_level
from chainflow.runnable import ExecutionContext


def test_load_config(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(
        "[engine]\nmax_concurrency = 4\nreturn_partial = true\ntags = ['tutorial']\n"
        "[logging]\nprint_level = 'WARNING'\n"
    )

    loaded = load_config(path)

    assert loaded.engine == EngineSettings(max_concurrency=4, return_partial=True, tags=["tutorial"])
    assert loaded.logging.print_level == "WARNING"
    assert loaded.logging.enable_file is False


def test_empty_file_uses_defaults(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("")
    assert load_config(path) == AppConfig()


def test_invalid_toml(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[engine\n")
    with pytest.raises(ValueError, match="Invalid TOML"):
        load_config(path)


def test_invalid_values(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[engine]\nmax_concurrency = 0\n")
    with pytest.raises(ValueError, match="validation failed"):
        load_config(path)


def test_config_is_singleton():
    assert Config() is config
    assert isinstance(config.engine, EngineSettings)


def test_context_from_settings():
    settings = EngineSettings(max_concurrency=2, tags=["a"])
    context = ExecutionContext.from_settings(settings, run_name="demo")

    assert context.max_concurrency == 2
    assert context.tags == ["a"]
    assert context.run_name == "demo"
    assert context.return_partial is False


def test_context_merge_and_child():
    context = ExecutionContext(tags=["a"], metadata={"x": 1})
    merged = context.merge(tags=["b", "a"], metadata={"y": 2})

    assert merged.tags == ["a", "b"]
    assert merged.metadata == {"x": 1, "y": 2}
    assert context.tags == ["a"]
    assert merged.child("step").execution_path == ["step"]
    with pytest.raises(ValueError):
        context.merge(colour="blue")


def test_define_log_level_returns_logger():
    logger = define_log_level(print_level="DEBUG", enable_file=False)
    logger.debug("logger configured")
    define_log_level(**config.logging.model_dump())
