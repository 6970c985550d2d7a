"""Unit tests for template expansion."""

from __future__ import annotations

import stat
from pathlib import Path

import pytest

from buildhelpers.templates import TemplateExpansionError, expand, expand_file, join_maps


def test_join_maps_later_mappings_win() -> None:
    merged = join_maps({"a": 1, "b": 1}, None, {"b": 2}, {"c": 3})

    assert merged == {"a": 1, "b": 2, "c": 3}


def test_expand_renders_variables_from_all_mappings() -> None:
    rendered = expand(
        "{{ name }}-{{ version }}", {"name": "agent", "version": "1"}, {"version": "2"}
    )

    assert rendered == "agent-2"


def test_expand_undefined_variable_is_an_error() -> None:
    with pytest.raises(TemplateExpansionError, match="failed to expand template"):
        expand("{{ missing }}")


def test_expand_syntax_error_is_reported() -> None:
    with pytest.raises(TemplateExpansionError, match="failed to parse template"):
        expand("{% if %}")


def test_expand_exposes_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BH_TEMPLATE_TEST", "from-env")
    monkeypatch.delenv("BH_TEMPLATE_UNSET", raising=False)

    assert expand("{{ env.BH_TEMPLATE_TEST }}") == "from-env"
    assert expand("{{ env_or('BH_TEMPLATE_UNSET', 'fallback') }}") == "fallback"


def test_expand_file_renders_destination_path(tmp_path: Path) -> None:
    source = tmp_path / "spec.tmpl"
    source.write_text("Name: {{ name }}\n", encoding="utf-8")

    target = expand_file(source, str(tmp_path / "out" / "{{ name }}.spec"), {"name": "agent"})

    assert target == tmp_path / "out" / "agent.spec"
    assert target.read_text(encoding="utf-8") == "Name: agent\n"
    assert stat.S_IMODE(target.stat().st_mode) == 0o644


def test_expand_file_missing_template(tmp_path: Path) -> None:
    with pytest.raises(TemplateExpansionError, match="failed reading from template"):
        expand_file(tmp_path / "absent.tmpl", tmp_path / "out")
