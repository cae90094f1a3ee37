import pytest

from divineclash.backend.config import ClashSettings, load_clash_settings, load_settings


def test_load_settings_reads_expected_env(monkeypatch) -> None:
    monkeypatch.setenv("DIVINECLASH_SERVER_SALT", "salt-1")
    monkeypatch.setenv("DIVINECLASH_HOST", "localhost")
    monkeypatch.setenv("DIVINECLASH_PORT", "9000")
    monkeypatch.setenv("DIVINECLASH_LOG_LEVEL", "debug")

    settings = load_settings()

    assert settings.server_salt == "salt-1"
    assert settings.host == "localhost"
    assert settings.port == 9000
    assert settings.log_level == "DEBUG"


def test_load_settings_applies_defaults(monkeypatch) -> None:
    for name in ("DIVINECLASH_SERVER_SALT", "DIVINECLASH_HOST", "DIVINECLASH_PORT", "DIVINECLASH_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()

    assert settings.server_salt == "dev-salt"
    assert settings.host == "127.0.0.1"
    assert settings.port == 8000
    assert settings.log_level == "INFO"


def test_load_clash_settings_defaults_match_rules(monkeypatch) -> None:
    for name in (
        "DIVINECLASH_MASTERY_RANK",
        "DIVINECLASH_ENABLE_OVERDRIVE",
        "DIVINECLASH_MAX_GROUP_DEFENSE",
        "DIVINECLASH_DEFAULT_VITALITY",
        "DIVINECLASH_DEFAULT_ATTACK_STONES",
        "DIVINECLASH_DEFAULT_DEFENSE_STONES",
    ):
        monkeypatch.delenv(name, raising=False)

    assert load_clash_settings() == ClashSettings(
        mastery_rank_default=2,
        overdrive_enabled=True,
        max_group_defenders=3,
        default_vitality=10,
        default_attack_stones=5,
        default_defense_stones=5,
    )


def test_load_clash_settings_reads_env_each_call(monkeypatch) -> None:
    monkeypatch.setenv("DIVINECLASH_ENABLE_OVERDRIVE", "false")
    monkeypatch.setenv("DIVINECLASH_MAX_GROUP_DEFENSE", "5")

    first = load_clash_settings()
    monkeypatch.setenv("DIVINECLASH_ENABLE_OVERDRIVE", "yes")
    second = load_clash_settings()

    assert first.overdrive_enabled is False
    assert first.max_group_defenders == 5
    assert second.overdrive_enabled is True


def test_load_clash_settings_rejects_out_of_range_values(monkeypatch) -> None:
    monkeypatch.setenv("DIVINECLASH_MASTERY_RANK", "11")

    with pytest.raises(ValueError):
        load_clash_settings()
