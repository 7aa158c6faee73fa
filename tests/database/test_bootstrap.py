from tuition_ledger.database.bootstrap import SCHEMA_PATH, _strip_create_db_and_use, _strip_line_comments, iter_sql_statements


def test_splitter_ignores_semicolons_inside_quotes():
    sql = "INSERT INTO t VALUES ('a;b'); INSERT INTO t VALUES (\"c;d\");\nSELECT 1"

    assert list(iter_sql_statements(sql)) == [
        "INSERT INTO t VALUES ('a;b')",
        'INSERT INTO t VALUES ("c;d")',
        "SELECT 1",
    ]


def test_splitter_handles_escaped_quotes():
    sql = r"INSERT INTO t VALUES ('it\'s; fine'); SELECT 2;"

    assert len(list(iter_sql_statements(sql))) == 2


def test_create_database_and_use_are_stripped():
    sql = "CREATE DATABASE foo;\nUSE foo;\nCREATE TABLE x (id INT);"

    assert list(iter_sql_statements(_strip_create_db_and_use(sql))) == ["CREATE TABLE x (id INT)"]


def test_bundled_schema_is_one_statement_with_the_identity_key():
    sql = _strip_line_comments(SCHEMA_PATH.read_text(encoding="utf-8"))
    statements = list(iter_sql_statements(sql))

    assert len(statements) == 1
    assert "UNIQUE KEY uq_attendance_identity (tenant_id, student_id, date, subject_key, faculty_key)" in statements[0]
