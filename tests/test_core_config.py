"""
Tests for the settings store and its loaders (neufw/core/config.py).

This module tests:
  - Literal type coercion, including the boolean-before-integer precedence.
  - Key normalisation and nested (dotted) key merging.
  - Required-key checks for every loader.
  - The dotenv, JSON and environment loaders end to end.
  - Store accessors: dotted lookup, set, delete, snapshots and copies.
"""

import json
import os

import pytest

from neufw.core.config import (
    LoaderOptions,
    Settings,
    coerce,
    deep_merge,
    load_environment,
    nest_key,
    normalize_key,
    verify_required,
)
from neufw.core.exceptions import ConfigurationError, SettingLookupError


# ============================================================================
# Type coercion
# ============================================================================

@pytest.mark.parametrize(
    "raw, expected",
    [
        ("", None),
        ("null", None),
        ("true", True),
        ("FALSE", False),
        ("yes", True),
        ("off", False),
        ("1", True),
        ("0", False),
        ("42", 42),
        ("3.14", 3.14),
        ("-5", -5.0),
        ("1e3", 1000.0),
        ("hello", "hello"),
        ("NULL", "NULL"),
        ("nan", "nan"),
        (" ", False),
        ("\u0661\u0662", "\u0661\u0662"),
        ("\u0661.5", "\u0661.5"),
    ],
)
def test_coerce_literal_types(raw, expected):
    result = coerce(raw)
    assert result == expected
    assert type(result) is type(expected)


def test_coerce_prefers_boolean_over_integer():
    assert coerce("1") is True
    assert coerce("10") == 10


def test_coerce_disabled_returns_input_unchanged():
    assert coerce("42", literal_types=False) == "42"
    assert coerce("", literal_types=False) == ""


def test_coerce_passes_non_strings_through():
    assert coerce(8080) == 8080
    assert coerce(None) is None


# ============================================================================
# Key normalisation and nesting
# ============================================================================

def test_normalize_key():
    assert normalize_key("Foo_Bar") == "foo_bar"
    assert normalize_key("Foo_Bar", lowercase=False) == "Foo_Bar"
    assert normalize_key("Mail.Host") == "mail.host"


def test_nest_key_builds_nested_mapping():
    assert nest_key("a.b.c", 1) == {"a": {"b": {"c": 1}}}


def test_deep_merge_keeps_siblings_and_last_scalar_wins():
    target = {"a": {"b": 1, "x": {"y": 1}}, "keep": True}
    deep_merge(target, {"a": {"c": 2, "x": {"z": 2}}})
    deep_merge(target, {"a": {"b": 3}})

    assert target == {"a": {"b": 3, "c": 2, "x": {"y": 1, "z": 2}}, "keep": True}


# ============================================================================
# Required keys
# ============================================================================

def test_verify_required():
    assert not verify_required({"a", "b"}, {"a": 1})
    assert verify_required({"a", "b"}, {"a": 1, "b": 2, "c": 3})
    assert verify_required(["a", "a"], ["a"])
    assert verify_required([], [])


# ============================================================================
# Loaders
# ============================================================================

def test_initialize_defaults_only_for_unknown_mechanism(tmp_path):
    settings = Settings(tmp_path).initialize("carrier-pigeon")

    assert settings.get_setting("environment") == "dev"
    assert settings.get_setting("protocol") == "https"
    assert settings.get_setting("logs_directory") == f"{tmp_path / 'logs'}/"
    assert settings.get_setting("templates_directory") == f"{tmp_path / 'templates'}/"
    assert settings.get_setting("session_name") == "neufw_session"


def test_json_loader_end_to_end(tmp_path):
    (tmp_path / "config.json").write_text(json.dumps({"DOMAIN": "x.com", "PORT": "8080"}))

    settings = Settings(tmp_path).initialize("json", {"directory": tmp_path})

    assert settings.get_setting("domain") == "x.com"
    assert settings.get_setting("port") == 8080
    assert settings.get_setting("DOMAIN") is None


def test_json_loader_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        Settings(tmp_path).initialize("json", {"directory": tmp_path})


def test_json_loader_malformed_file(tmp_path):
    (tmp_path / "config.json").write_text("{not json")

    with pytest.raises(ConfigurationError):
        Settings(tmp_path).initialize("json", {"directory": tmp_path})


def test_json_loader_rejects_nested_values(tmp_path):
    (tmp_path / "config.json").write_text(json.dumps({"mail": {"host": "smtp"}}))

    with pytest.raises(ConfigurationError) as exc_info:
        Settings(tmp_path).initialize("json", {"directory": tmp_path})

    assert "mail" in str(exc_info.value)


def test_json_loader_required_keys(tmp_path):
    (tmp_path / "settings.json").write_text(json.dumps({"a": "1"}))
    options = {"directory": tmp_path, "filename": "settings.json"}

    with pytest.raises(ConfigurationError):
        Settings(tmp_path).initialize("json", {**options, "required": ["a", "b"]})

    settings = Settings(tmp_path).initialize("json", {**options, "required": ["a", "environment"]})
    assert settings.get_setting("a") is True


def test_dotenv_loader(tmp_path):
    (tmp_path / ".env").write_text("Domain=example.com\nDEBUG=true\nRETRIES=3\nEMPTY=\n")

    settings = Settings(tmp_path).initialize("dotenv")

    assert settings.get_setting("domain") == "example.com"
    assert settings.get_setting("debug") is True
    assert settings.get_setting("retries") == 3
    assert "empty" in settings
    assert settings.get_setting("empty") is None


def test_dotenv_loader_preserves_case_and_strings(tmp_path):
    (tmp_path / ".env").write_text("Domain=example.com\nPORT=8080\n")

    settings = Settings(tmp_path).initialize("dotenv", {"lowercase_keys": False, "literal_types": False})

    assert settings.get_setting("Domain") == "example.com"
    assert settings.get_setting("PORT") == "8080"


def test_dotenv_loader_does_not_touch_process_environment(tmp_path, monkeypatch):
    monkeypatch.delenv("NEUFW_ONLY_IN_FILE", raising=False)
    (tmp_path / ".env").write_text("NEUFW_ONLY_IN_FILE=1\n")

    Settings(tmp_path).initialize("dotenv")

    assert "NEUFW_ONLY_IN_FILE" not in os.environ


def test_dotenv_loader_required_checks_file_names(tmp_path):
    (tmp_path / ".env").write_text("DOMAIN=example.com\n")

    with pytest.raises(ConfigurationError):
        Settings(tmp_path).initialize("dotenv", {"required": ["DOMAIN", "DATABASE_URL"]})

    settings = Settings(tmp_path).initialize("dotenv", {"required": ["DOMAIN"]})
    assert settings.get_setting("domain") == "example.com"


def test_dotenv_loader_missing_file(tmp_path):
    with pytest.raises(ConfigurationError):
        Settings(tmp_path).initialize("dotenv", {"filename": "missing.env"})


def test_dotenv_loader_multidimensional(tmp_path):
    (tmp_path / ".env").write_text("MAIL.HOST=smtp.example.com\nMAIL.PORT=465\nPLAIN=value\n")

    settings = Settings(tmp_path).initialize("dotenv", {"multidimensional": True})

    assert settings.get_setting("mail") == {"host": "smtp.example.com", "port": 465}
    assert settings.get_setting("mail.port") == 465
    assert settings.get_setting("mail.user") is None
    assert settings.get_setting("plain") == "value"


def test_env_loader_end_to_end(tmp_path):
    environ = {"CONFIG_DEBUG": "true", "PATH": "/usr/bin", "DEBUG": "false"}

    settings = Settings(tmp_path, environ=environ).initialize("env")

    assert settings.get_setting("debug") is True
    assert settings.get_setting("other") is None
    assert settings.get_setting("path") is None


def test_env_loader_required(tmp_path):
    environ = {"CONFIG_DOMAIN": "example.com"}

    with pytest.raises(ConfigurationError):
        Settings(tmp_path, environ=environ).initialize("env", {"required": ["domain", "database_url"]})


def test_env_loader_reads_process_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("CONFIG_NEUFW_TEST_DOMAIN", "example.org")

    settings = Settings(tmp_path).initialize("env")

    assert settings.get_setting("neufw_test_domain") == "example.org"


def test_load_environment_strips_prefix_only():
    assert load_environment({"CONFIG_A": "1", "XCONFIG_B": "2"}) == {"A": "1"}


def test_initialize_is_idempotent(tmp_path):
    (tmp_path / "config.json").write_text(json.dumps({"domain": "x.com"}))
    settings = Settings(tmp_path)

    settings.initialize("json")
    first = settings.get_all_settings()
    settings.set_setting("leaked", True)
    settings.initialize("json")

    assert settings.get_all_settings() == first
    assert settings.get_setting("leaked") is None


def test_failed_initialize_keeps_previous_store(tmp_path):
    (tmp_path / "config.json").write_text(json.dumps({"domain": "x.com"}))
    settings = Settings(tmp_path).initialize("json")

    with pytest.raises(ConfigurationError):
        settings.initialize("json", {"filename": "missing.json"})

    assert settings.get_setting("domain") == "x.com"


def test_loader_options_from_mapping_ignores_unknown_keys():
    options = LoaderOptions.from_value({"required": ["a"], "colour": "blue"})

    assert options.required == ("a",)
    assert options.lowercase_keys is True


def test_loader_options_single_required_key_as_string(tmp_path):
    assert LoaderOptions.from_value({"required": "domain"}).required == ("domain",)

    environ = {"CONFIG_DOMAIN": "example.com"}
    settings = Settings(tmp_path, environ=environ).initialize("env", {"required": "domain"})
    assert settings.get_setting("domain") == "example.com"


# ============================================================================
# Store accessors
# ============================================================================

def test_set_setting_nested_merge(tmp_path):
    settings = Settings(tmp_path).initialize("none", {"multidimensional": True})

    settings.set_setting("a.b", 1)
    settings.set_setting("a.c", 2)

    assert settings.get_setting("a") == {"b": 1, "c": 2}


def test_set_setting_flat_when_not_multidimensional(settings):
    settings.set_setting("a.b", 1)

    assert settings.get_setting("a.b") == 1
    assert settings.get_setting("a") is None


def test_dotted_lookup_through_scalar_raises(tmp_path):
    settings = Settings(tmp_path).initialize("none", {"multidimensional": True})
    settings.set_setting("a.b", 1)

    with pytest.raises(SettingLookupError):
        settings.get_setting("a.b.c")


def test_delete_setting(settings):
    settings.set_setting("domain", "example.com")

    settings.delete_setting("domain")
    settings.delete_setting("never-set")

    assert settings.get_setting("domain") is None


def test_get_all_settings_is_a_snapshot(settings):
    snapshot = settings.get_all_settings()
    snapshot["environment"] = "production"

    assert settings.get_setting("environment") == "dev"


def test_copy_is_independent(settings):
    clone = settings.copy()
    clone.set_setting("domain", "example.com")
    clone.delete_setting("protocol")

    assert settings.get_setting("domain") is None
    assert settings.get_setting("protocol") == "https"
