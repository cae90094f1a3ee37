from divineclash.backend.serve import parse_args


def test_parse_args_defaults_come_from_settings(monkeypatch) -> None:
    monkeypatch.setenv("DIVINECLASH_HOST", "0.0.0.0")
    monkeypatch.setenv("DIVINECLASH_PORT", "8100")
    monkeypatch.delenv("DIVINECLASH_LOG_LEVEL", raising=False)

    args = parse_args([])

    assert args.host == "0.0.0.0"
    assert args.port == 8100
    assert args.log_level == "INFO"
    assert args.reload is False


def test_parse_args_overrides_settings() -> None:
    args = parse_args(["--port", "9001", "--log-level", "debug", "--reload"])

    assert args.port == 9001
    assert args.log_level == "debug"
    assert args.reload is True
