# tests/test_migrations.py
# alembic 초기 리비전이 모델과 같은 스키마를 만드는지 확인
import os

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from insteam import models  # noqa: F401
from insteam.database import Base

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


@pytest.fixture()
def alembic_cfg(tmp_path):
    url = f"sqlite:///{tmp_path / 'migrate.db'}"
    cfg = Config()
    cfg.set_main_option("script_location", os.path.join(ROOT, "alembic"))
    cfg.set_main_option("sqlalchemy.url", url)
    return cfg, url


def test_upgrade_creates_every_model_table(alembic_cfg):
    cfg, url = alembic_cfg
    command.upgrade(cfg, "head")

    eng = create_engine(url)
    insp = inspect(eng)
    tables = set(insp.get_table_names()) - {"alembic_version"}
    assert tables == set(Base.metadata.tables)

    for name, table in Base.metadata.tables.items():
        cols = {c["name"] for c in insp.get_columns(name)}
        assert cols == {c.name for c in table.columns}, name

    job_indexes = {ix["name"] for ix in insp.get_indexes("jobs")}
    assert "ix_job_contractor_scheduled" in job_indexes
    tx_indexes = {ix["name"]: ix for ix in insp.get_indexes("point_transactions")}
    assert tx_indexes["ix_point_transactions_idempotency_key"]["unique"]
    eng.dispose()


def test_upgrade_twice_and_downgrade(alembic_cfg):
    cfg, url = alembic_cfg
    command.upgrade(cfg, "head")
    command.downgrade(cfg, "base")
    command.upgrade(cfg, "head")
    command.downgrade(cfg, "base")

    eng = create_engine(url)
    assert set(inspect(eng).get_table_names()) <= {"alembic_version"}
    eng.dispose()
