from __future__ import annotations

import json
from pathlib import Path

import pytest

from evaka_monitor.config import ConfigurationError
from evaka_monitor.instances import DEFAULT_INSTANCES, filter_instances, load_instances
from evaka_monitor.models import InstanceKind


def test_default_instances_have_one_core_and_unique_names() -> None:
    assert load_instances(None) == DEFAULT_INSTANCES
    names = [i.name for i in DEFAULT_INSTANCES]
    assert len(names) == len(set(names))
    core = [i for i in DEFAULT_INSTANCES if i.kind is InstanceKind.CORE]
    assert [i.name for i in core] == ["Espoo"]
    assert core[0].repository == "espoon-voltti/evaka"


def test_load_instances_from_json_file(tmp_path: Path) -> None:
    path = tmp_path / "instances.json"
    path.write_text(
        json.dumps(
            [
                {"name": "Espoo", "domain": "espoo.test", "repository": "espoon-voltti/evaka", "kind": "Core"},
                {"name": "Oulu", "domain": "oulu.test", "repository": "Oulunkaupunki/evakaoulu", "kind": "Wrapper"},
            ]
        ),
        encoding="utf-8",
    )
    instances = load_instances(path)
    assert [i.name for i in instances] == ["Espoo", "Oulu"]
    assert instances[1].kind is InstanceKind.WRAPPER


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        "[]",
        json.dumps([{"name": "X", "domain": "x.test", "repository": "a/b", "kind": "Plugin"}]),
        json.dumps(
            [
                {"name": "X", "domain": "x.test", "repository": "a/b", "kind": "Core"},
                {"name": "X", "domain": "y.test", "repository": "a/b", "kind": "Core"},
            ]
        ),
    ],
)
def test_load_instances_rejects_invalid_files(tmp_path: Path, content: str) -> None:
    path = tmp_path / "instances.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_instances(path)


def test_load_instances_reports_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="Cannot read instances file"):
        load_instances(tmp_path / "missing.json")


def test_filter_instances_is_case_insensitive() -> None:
    selected = filter_instances(DEFAULT_INSTANCES, ["oulu", "TAMPERE"])
    assert [i.name for i in selected] == ["Oulu", "Tampere"]
    assert filter_instances(DEFAULT_INSTANCES, None) == DEFAULT_INSTANCES


def test_filter_instances_rejects_unknown_names() -> None:
    with pytest.raises(ConfigurationError, match="atlantis"):
        filter_instances(DEFAULT_INSTANCES, ["Atlantis"])
