from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from ..config import DbConfig


def create_db_engine(url: str, config: DbConfig | None = None, **kwargs: Any) -> Engine:
    """
    Create a SQLAlchemy engine for a ``mysql+pymysql://`` URL.

    The command timeout is applied as PyMySQL read/write socket timeouts so
    every statement on the engine's connections carries it. Pooling is the
    engine's own; extra keyword arguments go to `create_engine`.
    """
    config = config or DbConfig()
    connect_args = dict(kwargs.pop("connect_args", {}))
    connect_args.setdefault("read_timeout", config.command_timeout_s)
    connect_args.setdefault("write_timeout", config.command_timeout_s)
    connect_args.setdefault("charset", "utf8mb4")
    kwargs.setdefault("pool_pre_ping", True)
    return create_engine(url, connect_args=connect_args, **kwargs)
