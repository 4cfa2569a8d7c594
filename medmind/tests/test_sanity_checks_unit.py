import json

import pytest

from medmind.fixtures.demo_cache import DEMO_CACHE, get_cached_case, list_cached_case_ids
from medmind.fixtures.demo_cases import DEMO_CASES, get_demo_case
from medmind.fixtures.sanity import check_demo_cache
from medmind.internal_core.config import load_config
from medmind.scripts.run_sanity_checks import main


def test_cached_records_are_deep_copies() -> None:
    record = get_cached_case("pneumonia")
    record["differentials"][0]["name"] = "mutated"
    record["audit"]["postprocessing_actions"].append("x")

    assert DEMO_CACHE["pneumonia"]["differentials"][0]["name"] == "Bacterial Pneumonia"
    assert DEMO_CACHE["pneumonia"]["audit"]["postprocessing_actions"] == []
    assert get_cached_case("missing") is None


def test_demo_cases_cover_every_cached_record() -> None:
    case_ids = {item.id for item in DEMO_CASES}
    assert set(list_cached_case_ids()) <= case_ids
    assert get_demo_case(" ACL ").label == "ACL Tear"
    assert get_demo_case("") is None


def test_all_cached_cases_pass_sanity_checks() -> None:
    checks = check_demo_cache()
    assert [item.case_id for item in checks] == ["anemia", "pneumonia"]
    assert all(item.ok for item in checks), [item.failures for item in checks]


def test_sanity_check_reports_missing_case() -> None:
    (check,) = check_demo_cache(["acl"])
    assert check.ok is False
    assert check.failures == ["no cached record"]


def test_cli_exit_codes(capsys) -> None:
    assert main([]) == 0
    out = capsys.readouterr().out
    assert "pneumonia: ok" in out
    assert "passed: 2/2" in out

    assert main(["--case", "skin", "--json"]) == 1
    payload = json.loads(capsys.readouterr().out)
    assert payload == [{"case_id": "skin", "ok": False, "failures": ["no cached record"]}]


def test_config_defaults_and_validation(monkeypatch) -> None:
    for name in (
        "MEDMIND_LOG_LEVEL",
        "MEDMIND_TRACE_PREFIX",
        "MEDMIND_GROUNDING_PENALTY",
        "MEDMIND_URGENCY_UPGRADE_THRESHOLD",
        "MEDMIND_DEMO_CACHE_ENABLED",
        "MEDMIND_MAX_TEXT_CHARS",
    ):
        monkeypatch.delenv(name, raising=False)

    config = load_config()
    assert config.MEDMIND_LOG_LEVEL == "INFO"
    assert config.MEDMIND_TRACE_PREFIX == "medmind"
    assert config.MEDMIND_GROUNDING_PENALTY == 0.4
    assert config.MEDMIND_URGENCY_UPGRADE_THRESHOLD == 0.2
    assert config.MEDMIND_DEMO_CACHE_ENABLED is True
    assert config.MEDMIND_MAX_TEXT_CHARS == 20000

    monkeypatch.setenv("MEDMIND_DEMO_CACHE_ENABLED", "off")
    monkeypatch.setenv("MEDMIND_LOG_LEVEL", "debug")
    config = load_config()
    assert config.MEDMIND_DEMO_CACHE_ENABLED is False
    assert config.MEDMIND_LOG_LEVEL == "DEBUG"

    monkeypatch.setenv("MEDMIND_GROUNDING_PENALTY", "1.5")
    with pytest.raises(ValueError, match="MEDMIND_GROUNDING_PENALTY"):
        load_config()
