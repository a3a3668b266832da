"""
SQLAlchemy 模型通用字段 Mixin

收敛漫画各层级表重复的时间戳字段定义，避免并行维护漂移。
"""

from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.orm import Mapped, mapped_column


class TimestampsMixin:
    """通用时间戳字段（创建/更新时间）"""

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
