from contextlib import contextmanager

import pytest

from simplesearch.index.mysql_index import MysqlIndex
from simplesearch.storage.mysql_adapter import MysqlAdapter, MysqlConfig

BUCKETS = "`h1`, `h2`, `h3`, `h4`, `h5`, `h6`, `text`"


class RecordingExecutor(MysqlAdapter):
    """Records statements instead of talking to a server."""

    def __init__(self, responses=None, failures=None):
        super().__init__(MysqlConfig())
        self.responses = dict(responses or {})
        self.failures = dict(failures or {})
        self.statements = []
        self.is_open = False

    def connect(self) -> None:
        self.is_open = True

    def close(self) -> None:
        self.is_open = False

    @contextmanager
    def transaction(self):
        yield None

    def execute(self, statement, parameters=None):
        self.statements.append((statement, dict(parameters or {})))
        for prefix, error in self.failures.items():
            if statement.startswith(prefix):
                raise error
        for prefix, rows in self.responses.items():
            if statement.startswith(prefix):
                return rows
        return []


@pytest.fixture
def executor():
    return RecordingExecutor(responses={
        "SHOW COLUMNS": [{"Field": "__identifier__"}, {"Field": "title"}],
    })


@pytest.fixture
def mysql_index(executor):
    index = MysqlIndex("products", executor=executor)
    index.connect()
    executor.statements.clear()
    return index


def _statements(executor):
    return [statement for statement, _ in executor.statements]


def test_connect_creates_tables_and_loads_schema(executor):
    index = MysqlIndex("products", executor=executor)
    index.connect()

    statements = _statements(executor)
    assert statements[0].startswith("CREATE TABLE IF NOT EXISTS `fulltext_objects` (`__identifier__` VARCHAR(40)")
    assert statements[1].startswith("CREATE TABLE IF NOT EXISTS `fulltext_index` (")
    assert f"FULLTEXT nodeindex ({BUCKETS})" in statements[1]
    assert "ENGINE = InnoDB" in statements[1]
    assert statements[2] == "SHOW COLUMNS FROM `fulltext_objects`"
    assert "title" in index.schema
    assert len(index.schema) == 1


def test_index_data_statements(mysql_index, executor):
    mysql_index.index_data("A", {"title": "Hello", "body": ["x", "y"]}, {"h1": "Hello"})

    alter, upsert, replace = executor.statements
    assert alter[0] == "ALTER TABLE `fulltext_objects` ADD COLUMN `body` MEDIUMTEXT DEFAULT NULL"
    assert upsert[0] == (
        "INSERT INTO `fulltext_objects` (`__identifier__`, `title`, `body`) VALUES (:identifier, :arg1, :arg2) "
        "ON DUPLICATE KEY UPDATE `title` = VALUES(`title`), `body` = VALUES(`body`)"
    )
    assert upsert[1] == {"identifier": "A", "arg1": "Hello", "arg2": "x,y"}
    assert replace[0] == (
        f"REPLACE INTO `fulltext_index` (`__identifier__`, {BUCKETS}) "
        "VALUES (:identifier, :h1, :h2, :h3, :h4, :h5, :h6, :text)"
    )
    assert replace[1]["h1"] == "Hello"
    assert replace[1]["text"] == ""
    assert "body" in mysql_index.schema


def test_index_data_without_properties(mysql_index, executor):
    mysql_index.index_data("A", {}, {})

    assert executor.statements[0][0] == "INSERT IGNORE INTO `fulltext_objects` (`__identifier__`) VALUES (:identifier)"


def test_failed_write_reloads_schema(mysql_index, executor):
    executor.failures["REPLACE INTO"] = RuntimeError("write failed")

    with pytest.raises(RuntimeError):
        mysql_index.index_data("A", {"body": "x"}, {})

    assert _statements(executor)[-1] == "SHOW COLUMNS FROM `fulltext_objects`"
    assert "body" not in mysql_index.schema


def test_add_to_fulltext(mysql_index, executor):
    mysql_index.add_to_fulltext({"text": "more"}, "A")

    statement, parameters = executor.statements[0]
    assert statement == (
        "UPDATE `fulltext_index` SET `text` = CASE WHEN `text` = '' THEN :bucket_text "
        "ELSE CONCAT(`text`, ' ', :bucket_text) END WHERE `__identifier__` = :identifier"
    )
    assert parameters == {"identifier": "A", "bucket_text": "more"}


def test_remove_data(mysql_index, executor):
    mysql_index.remove_data("A")

    assert _statements(executor) == [
        "DELETE FROM `fulltext_objects` WHERE `__identifier__` = :identifier",
        "DELETE FROM `fulltext_index` WHERE `__identifier__` = :identifier",
    ]


def test_flush(mysql_index, executor):
    mysql_index.flush()

    statements = _statements(executor)
    assert statements[:2] == ["DROP TABLE IF EXISTS `fulltext_objects`", "DROP TABLE IF EXISTS `fulltext_index`"]
    assert statements[2].startswith("CREATE TABLE IF NOT EXISTS `fulltext_objects`")
    assert len(mysql_index.schema) == 0


def test_optimize(mysql_index, executor):
    mysql_index.optimize()

    assert _statements(executor) == [
        "SET GLOBAL innodb_optimize_fulltext_only = 1",
        "OPTIMIZE TABLE `fulltext_index`",
        "SET GLOBAL innodb_optimize_fulltext_only = 0",
        "OPTIMIZE TABLE `fulltext_objects`, `fulltext_index`",
    ]


def test_optimize_resets_server_setting_on_failure(mysql_index, executor):
    executor.failures["OPTIMIZE TABLE `fulltext_index`"] = RuntimeError("optimize failed")

    with pytest.raises(RuntimeError):
        mysql_index.optimize()

    assert _statements(executor)[-1] == "SET GLOBAL innodb_optimize_fulltext_only = 0"


def test_fulltext_match_result_uses_extracted_snippet(mysql_index, executor):
    executor.responses["SELECT * FROM `fulltext_objects`"] = [{"__identifier__": "1", "title": "Hello"}]
    executor.responses["SELECT `__identifier__`"] = [{
        "__identifier__": "1", "h1": "", "h2": "", "h3": "", "h4": "", "h5": "", "h6": "",
        "text": "Hello World Hello Hello",
    }]

    snippet = (
        mysql_index.query()
        .exact_match("title", "Hello")
        .fulltext("World")
        .fulltext_match_result("World", window_size=20)
    )

    assert snippet == "Hello <b>World</b> Hello..."
    statement, parameters = executor.statements[-1]
    assert statement.startswith("SELECT `__identifier__`, `h1`")
    assert parameters == {"identifier_0": "1"}


def test_find_one_by_identifier(mysql_index, executor):
    executor.responses["SELECT * FROM `fulltext_objects` WHERE"] = [{"__identifier__": "A", "title": "Hello"}]

    assert mysql_index.find_one_by_identifier("A") == {"__identifier__": "A", "title": "Hello"}
    assert executor.statements[0][0].endswith("WHERE `__identifier__` = :identifier LIMIT 1")
