"""Shared fixtures: a throwaway legacy source tree and a config pointing at it."""
import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def legacy_dir(tmp_path):
    """Minimal VB.NET source tree with two Search/Detail entities and one single form."""
    base  = tmp_path / "legacy"
    forms = base / "Forms"
    forms.mkdir(parents=True)
    for name in (
        "frmFacilitySearch", "frmFacilityDetail",
        "frmVendorSearch", "frmBargeStatus",
    ):
        (forms / f"{name}.vb").write_text(f"Public Class {name}\nEnd Class\n", encoding="utf-8")
    (forms / "frmFacilityDetail.Designer.vb").write_text("' designer\n", encoding="utf-8")
    (forms / "README.txt").write_text("not a form\n", encoding="utf-8")
    return base


@pytest.fixture
def config(tmp_path, legacy_dir):
    return {
        "inputDirectory": str(legacy_dir),
        "paths": {
            "forms":               "Forms",
            "businessObjects":     "BusinessObjects",
            "businessObjectsBase": "BusinessObjects/Base",
            "lists":               "Lists",
        },
        "referenceProjects": {
            "crewingApi": "C:/source/Crewing.Api",
            "crewingUi":  "C:/source/Crewing.UI",
        },
        "targetProjects": {
            "adminApi": "C:/source/Admin.Api",
            "adminUi":  "C:/source/Admin.UI",
            "shared":   "C:/source/Admin.Shared",
            "monorepo": str(tmp_path / "mono"),
        },
        "outputRoot": str(tmp_path / "output"),
        "cli": {"command": "claude"},
    }


@pytest.fixture
def config_file(tmp_path, config):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(config), encoding="utf-8")
    return path
