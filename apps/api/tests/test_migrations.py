"""
Tests for the Alembic revision graph and the migration bootstrap.
"""
import re
import shutil
from pathlib import Path

from alembic.config import Config
from alembic.script import ScriptDirectory

import run_migrations
from core.database import Base
import models  # noqa: F401

API_ROOT = Path(run_migrations.__file__).resolve().parent

STRAY_REVISION = '''"""stray root"""
revision = '002_stray_root'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    pass


def downgrade() -> None:
    pass
'''


def _config_for(script_location: Path) -> Config:
    cfg = Config(str(API_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(script_location))
    return cfg


class TestMigrationGraph:
    def test_shipped_graph_is_linear(self):
        assert run_migrations.check_migration_graph() == []

    def test_second_root_is_reported(self, tmp_path):
        location = tmp_path / "alembic"
        shutil.copytree(API_ROOT / "alembic", location, ignore=shutil.ignore_patterns("__pycache__"))
        (location / "versions" / "002_stray_root.py").write_text(STRAY_REVISION)

        problems = run_migrations.check_migration_graph(_config_for(location))

        assert len(problems) == 2
        assert problems[0].startswith("expected one head, found 2")
        assert problems[1].startswith("expected one root, found 2")

    def test_migrations_create_every_model_table(self):
        script = ScriptDirectory.from_config(run_migrations._get_alembic_config())
        created = set()
        for revision in script.walk_revisions():
            source = Path(revision.path).read_text()
            created.update(re.findall(r"op\.create_table\(\s*'(\w+)'", source))

        assert created == set(Base.metadata.tables)


class TestBootstrap:
    def test_ambiguous_graph_blocks_upgrade(self, monkeypatch):
        upgrades = []
        monkeypatch.setattr(run_migrations, "check_db_ready", lambda: True)
        monkeypatch.setattr(run_migrations, "check_migration_graph", lambda: ["expected one head, found 2"])
        monkeypatch.setattr(run_migrations, "alembic_upgrade_head", lambda: upgrades.append(True))

        assert run_migrations.main(max_retries=1) == 1
        assert upgrades == []

    def test_upgrade_runs_when_graph_is_clean(self, monkeypatch):
        upgrades = []
        monkeypatch.setattr(run_migrations, "check_db_ready", lambda: True)
        monkeypatch.setattr(run_migrations, "alembic_upgrade_head", lambda: upgrades.append(True))

        assert run_migrations.main(max_retries=1) == 0
        assert upgrades == [True]
