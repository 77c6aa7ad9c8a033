"""Schema migration stays in step with the ORM metadata."""

from __future__ import annotations

import importlib.util
import re
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from hr_portal.database import Base

VERSIONS = Path(__file__).resolve().parent.parent / "alembic" / "versions"


def _load(name: str):
    spec = importlib.util.spec_from_file_location(name, VERSIONS / f"{name}.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def executed() -> list[str]:
    module = _load("001_leave_core_schema")
    module.op = MagicMock()
    module.upgrade()
    return [c.args[0] for c in module.op.execute.call_args_list]


class TestLeaveCoreSchema:

    def test_every_mapped_table_is_created(self, executed):
        created = {
            m.group(1)
            for sql in executed
            for m in [re.search(r"CREATE TABLE (\w+)", sql)]
            if m
        }
        assert created == set(Base.metadata.tables)

    def test_named_constraints_match_models(self, executed):
        ddl = "\n".join(executed)
        for table in Base.metadata.tables.values():
            for constraint in table.constraints:
                if constraint.name and not constraint.name.startswith(("pk_", "fk_")):
                    assert constraint.name in ddl, constraint.name

    def test_enum_values_match_models(self):
        from hr_portal.common.constants import LeaveStatus, NotificationType, UserRole

        enums = dict(_load("001_leave_core_schema").ENUM_TYPES)
        assert enums["leave_status"] == [s.value for s in LeaveStatus]
        assert enums["user_role"] == [r.value for r in UserRole]
        assert enums["notification_type"] == [t.value for t in NotificationType]
