from sheets.config import load_settings


def test_defaults(monkeypatch, tmp_path):
    for name in (
        "SHEETS_SEFARIA_BASE_URL",
        "SHEETS_HTTP_TIMEOUT_S",
        "SHEETS_NAME_LIMIT",
        "SHEETS_SEARCH_SIZE",
        "SHEETS_SAVE_DEBOUNCE_S",
        "SHEETS_HISTORY_LIMIT",
        "SHEETS_ASSISTANT_URL",
        "SHEETS_LOG_LEVEL",
        "SHEETS_SESSION_IDLE_S",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SHEETS_DATA_DIR", str(tmp_path))

    s = load_settings()

    assert s.sefaria_base_url == "https://www.sefaria.org"
    assert s.http_timeout_s == 15.0
    assert (s.name_limit, s.search_size, s.history_limit) == (10, 8, 50)
    assert s.save_debounce_s == 2.0
    assert s.assistant_url == ""
    assert s.log_level == "INFO"
    assert s.sheet_db_path == tmp_path.resolve() / "sheets.sqlite3"
    assert s.guest_cache_dir == tmp_path.resolve() / "guests"
    assert s.session_idle_s == 1800.0


def test_env_overrides_and_bad_values(monkeypatch, tmp_path):
    monkeypatch.setenv("SHEETS_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("SHEETS_SEFARIA_BASE_URL", "http://mirror.local/")
    monkeypatch.setenv("SHEETS_SAVE_DEBOUNCE_S", "0.5")
    monkeypatch.setenv("SHEETS_HISTORY_LIMIT", "many")
    monkeypatch.setenv("SHEETS_HTTP_TIMEOUT_S", "0")
    monkeypatch.setenv("SHEETS_LOG_LEVEL", "debug")

    s = load_settings()

    assert s.sefaria_base_url == "http://mirror.local"
    assert s.save_debounce_s == 0.5
    assert s.history_limit == 50
    assert s.http_timeout_s == 1.0
    assert s.log_level == "DEBUG"
