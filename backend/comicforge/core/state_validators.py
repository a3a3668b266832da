"""
页面状态校验工具

提供页面生命周期状态的转换表与校验函数。
所有写入页面状态的地方都必须先经过 validate_page_transition。
"""

from typing import Dict, FrozenSet, Union

from .constants import PageStatus
from ..exceptions import InvalidStateTransitionError


# ============================================================================
# 状态转换表
# ============================================================================

# 不允许回到 pending；generating 可能没有落库，最终结果可从任意状态写入
# 同状态重复写入视为幂等
PAGE_STATUS_TRANSITIONS: Dict[PageStatus, FrozenSet[PageStatus]] = {
    PageStatus.PENDING: frozenset({PageStatus.GENERATING, PageStatus.PUBLISHED, PageStatus.FAILED}),
    PageStatus.GENERATING: frozenset({PageStatus.GENERATING, PageStatus.PUBLISHED, PageStatus.FAILED}),
    PageStatus.PUBLISHED: frozenset({PageStatus.PUBLISHED, PageStatus.GENERATING, PageStatus.FAILED}),
    PageStatus.FAILED: frozenset({PageStatus.FAILED, PageStatus.GENERATING, PageStatus.PUBLISHED}),
}

_missing = set(PageStatus) - set(PAGE_STATUS_TRANSITIONS)
if _missing:
    raise RuntimeError(f"页面状态转换表缺少状态: {sorted(s.value for s in _missing)}")


# ============================================================================
# 校验函数
# ============================================================================

def coerce_page_status(value: Union[str, PageStatus, None]) -> PageStatus:
    """
    将数据库中的字符串状态转换为枚举

    历史数据中可能存在空值或未知取值（如旧版本写入的 "draft"），
    这些都按 pending 处理。
    """
    if isinstance(value, PageStatus):
        return value
    try:
        return PageStatus(value)
    except ValueError:
        return PageStatus.PENDING


def can_transition(current: Union[str, PageStatus, None], target: PageStatus) -> bool:
    """检查页面状态是否允许从 current 转换到 target"""
    return target in PAGE_STATUS_TRANSITIONS[coerce_page_status(current)]


def validate_page_transition(
    current: Union[str, PageStatus, None],
    target: PageStatus,
) -> None:
    """
    验证页面状态转换是否合法

    Args:
        current: 页面当前状态
        target: 目标状态

    Raises:
        InvalidStateTransitionError: 当转换不合法时抛出
    """
    current_status = coerce_page_status(current)
    allowed = PAGE_STATUS_TRANSITIONS[current_status]
    if target not in allowed:
        raise InvalidStateTransitionError(
            current_status.value,
            target.value,
            ", ".join(sorted(s.value for s in allowed)),
        )
