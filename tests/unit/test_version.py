from pathlib import Path

import pytest

from bdtax.backend import version


def test_pyproject_version_matches_reported_version() -> None:
    declared = version.read_pyproject_version(version.PYPROJECT_PATH)

    assert version.get_project_version() == declared


def test_read_pyproject_version_ignores_other_tables(tmp_path: Path) -> None:
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(
        '[tool.other]\nversion = "9.9.9"\n\n[project]\nname = "demo"\nversion = "1.2.3"\n',
        encoding="utf-8",
    )

    assert version.read_pyproject_version(pyproject) == "1.2.3"


def test_read_pyproject_version_requires_project_version(tmp_path: Path) -> None:
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text('[project]\nname = "demo"\n', encoding="utf-8")

    with pytest.raises(RuntimeError):
        version.read_pyproject_version(pyproject)
