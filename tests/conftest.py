# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from elabel_import.logging.init import reset_logging
from tests.fixture_builders import make_csv, make_xlsx


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("ELABEL_USER_ID", raising=False)
        monkeypatch.delenv("DATABASE_URL", raising=False)
        yield p


@pytest.fixture(autouse=True)
def clean_logging():
    # StreamHandler は生成時の sys.stdout を掴むのでテスト毎に作り直す
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: elabel
user_id: user-from-config
submit_timeout_seconds: 15
null_sentinels: ["NULL", "n/a"]
logs_directory: ./logs
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def ingredients_xlsx() -> bytes:
    return make_xlsx(
        {
            "Ingredients": [
                ["Name", "Category", "E Number", "Allergen"],
                ["Sucrose", None, "E954", None],
                ["Sulphites", "Preservative", "E220", "Sulphites"],
                ["   ", "Antioxidant", "E300", None],
                ["Tartaric acid", "Acidity regulator", "E334", None],
            ],
            "Ignored": [["Name"], ["never read"]],
        }
    )


@pytest.fixture()
def products_csv() -> bytes:
    return make_csv(
        [
            "Name,Net Volume,Vintage,Type,Sugar Content,SKU Code,Brand,Alcohol,Country of Origin,EAN/GTIN",
            "Chateau Test,750 ml,2019,Red,Dry,SKU-1,Test Brand,13.5,France,3760123456789",
            ",750 ml,2020,White,Dry,SKU-2,Test Brand,12,France,",
        ]
    )
