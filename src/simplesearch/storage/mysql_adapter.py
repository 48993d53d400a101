import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from pydantic import SecretStr
from pydantic_settings import BaseSettings

from .base import StatementExecutor

logger = logging.getLogger(__name__)


class MysqlConfig(BaseSettings):
    """Configuration for the MySQL index server."""
    MYSQL_USER: str = "simplesearch"
    MYSQL_PASSWORD: SecretStr = SecretStr("simplesearch")
    MYSQL_HOST: str = "localhost"
    MYSQL_PORT: int = 3306
    MYSQL_DB: str = "simplesearch"
    MYSQL_POOL_SIZE: int = 5
    MYSQL_MAX_OVERFLOW: int = 10

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def connection_string(self) -> str:
        return (
            f"mysql+pymysql://{self.MYSQL_USER}:{self.MYSQL_PASSWORD.get_secret_value()}"
            f"@{self.MYSQL_HOST}:{self.MYSQL_PORT}/{self.MYSQL_DB}?charset=utf8mb4"
        )


class MysqlAdapter(StatementExecutor):
    """
    SQLAlchemy-based executor for a MySQL server using InnoDB FULLTEXT indexes.
    """

    def __init__(self, config: MysqlConfig):
        super().__init__()
        self.config = config

    @property
    def backend(self) -> str:
        return "mysql"

    def _create_engine(self) -> Engine:
        logger.info(f"Connecting to MySQL at {self.config.MYSQL_HOST}:{self.config.MYSQL_PORT}")
        return create_engine(
            self.config.connection_string,
            pool_size=self.config.MYSQL_POOL_SIZE,
            max_overflow=self.config.MYSQL_MAX_OVERFLOW,
            pool_pre_ping=True,
        )
