from mxindex.db.migrate import MIGRATIONS_DIR, apply_migrations
from tests.fakes import _NullContext


class RecordingConnection:
    def __init__(self, already_applied: set[str] | None = None):
        self.already_applied = already_applied or set()
        self.executed: list[str] = []
        self.transactions = 0

    async def execute(self, sql: str, *args):
        self.executed.append(sql if not args else f"{sql} {args}")

    async def fetchval(self, sql: str, name: str):
        return 1 if name in self.already_applied else None

    def transaction(self):
        self.transactions += 1
        return _NullContext()


def _write(tmp_path, name: str, sql: str) -> None:
    (tmp_path / name).write_text(sql)


async def test_applies_pending_in_order(tmp_path):
    _write(tmp_path, "002_second.sql", "SELECT 2;")
    _write(tmp_path, "001_first.sql", "SELECT 1;")
    conn = RecordingConnection()

    applied = await apply_migrations(conn, tmp_path)

    assert applied == ["001_first.sql", "002_second.sql"]
    assert conn.transactions == 2
    bodies = [sql for sql in conn.executed if sql.startswith("SELECT")]
    assert bodies == ["SELECT 1;", "SELECT 2;"]


async def test_skips_applied(tmp_path):
    _write(tmp_path, "001_first.sql", "SELECT 1;")
    _write(tmp_path, "002_second.sql", "SELECT 2;")
    conn = RecordingConnection(already_applied={"001_first.sql"})

    applied = await apply_migrations(conn, tmp_path)

    assert applied == ["002_second.sql"]
    assert "SELECT 1;" not in conn.executed


def test_bundled_schema():
    sql = (MIGRATIONS_DIR / "001_create_servers.sql").read_text()

    assert "CONSTRAINT servers_domain_key UNIQUE (domain)" in sql
    assert "CHECK (updated_at >= created_at)" in sql
    assert "room_versions TEXT[]" in sql
