"""
Tests for layered configuration
"""

import pytest

from taggedpyxm.core.config import DEFAULTS, Config
from taggedpyxm.engine.template import TemplateEnvironment


def test_defaults():
    config = Config(load_env=False)

    assert config.get("templates.extension") == ".pyxm"
    assert config.get_int("cache.max_size") == 100
    assert config.get_bool("lexer.trim_blocks") is True
    assert config.get("missing.key", "fallback") == "fallback"


def test_init_data_overrides_defaults():
    config = Config({"cache": {"max_size": 5}}, load_env=False)

    assert config.get_int("cache.max_size") == 5
    # sibling keys survive the deep merge
    assert config.get_bool("compiler.autoescape") is True


def test_env_overrides():
    config = Config(load_env=False)
    config.load_env_overrides({
        "PYXM_CACHE__MAX_SIZE": "7",
        "PYXM_COMPILER__AUTOESCAPE": "off",
        "PYXM_TEMPLATES__EXTENSION": ".html",
        "PYXM_EXTRA__ITEMS": '["a", "b"]',
        "UNRELATED": "ignored",
    })

    assert config.get("cache.max_size") == 7
    assert config.get_bool("compiler.autoescape") is False
    assert config.get_str("templates.extension") == ".html"
    assert config.get("extra.items") == ["a", "b"]
    assert "unrelated" not in config.all()


def test_env_overrides_read_process_environment(monkeypatch):
    monkeypatch.setenv("PYXM_LOGGING__LEVEL", "DEBUG")

    assert Config().get("logging.level") == "DEBUG"


def test_runtime_values_win():
    config = Config(load_env=False)
    config.load_env_overrides({"PYXM_CACHE__MAX_SIZE": "7"})
    config.set("cache.max_size", 3)

    assert config["cache.max_size"] == 3


def test_load_file(tmp_path):
    path = tmp_path / "pyxm_settings.py"
    path.write_text("config = {'compiler': {'debug': True}}\n")
    config = Config(load_env=False)
    config.load_file(path)

    assert config.get_bool("compiler.debug") is True


def test_load_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        Config(load_env=False).load_file(tmp_path / "missing.py")


def test_section_is_a_copy():
    config = Config(load_env=False)
    section = config.section("compiler")
    section["autoescape"] = False

    assert config.get_bool("compiler.autoescape") is True
    assert DEFAULTS["compiler"]["autoescape"] is True


def test_dict_access():
    config = Config(load_env=False)
    config["lexer.trim_blocks"] = False

    assert "lexer.trim_blocks" in config
    assert config.get_bool("lexer.trim_blocks") is False
    with pytest.raises(KeyError):
        config["nope"]


def test_environment_reads_config():
    config = Config({"cache": {"max_size": 2}, "templates": {"auto_reload": True}}, load_env=False)
    env = TemplateEnvironment(config=config)

    assert env.cache.max_size == 2
    assert env.auto_reload is True
