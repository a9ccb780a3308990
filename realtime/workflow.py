"""
realtime/workflow.py

创建流程状态机 - 服务请求与点餐共用

    validating -> persisting -> committed -> notified
         \\            \\
          +-> aborted   +-> aborted

aborted 与 notified 为终态；aborted 只通知发起方。
"""
from typing import Dict, FrozenSet, List, Optional
from dataclasses import dataclass, field
from enum import Enum
import logging
import time

logger = logging.getLogger(__name__)


class WorkflowState(str, Enum):
    """创建流程状态"""
    VALIDATING = "validating"    # 校验输入
    PERSISTING = "persisting"    # 事务写入中
    COMMITTED = "committed"      # 已提交
    NOTIFIED = "notified"        # 已通知（终态）
    ABORTED = "aborted"          # 已中止（终态）


_TRANSITIONS: Dict[WorkflowState, FrozenSet[WorkflowState]] = {
    WorkflowState.VALIDATING: frozenset({WorkflowState.PERSISTING, WorkflowState.ABORTED}),
    WorkflowState.PERSISTING: frozenset({WorkflowState.COMMITTED, WorkflowState.ABORTED}),
    WorkflowState.COMMITTED: frozenset({WorkflowState.NOTIFIED}),
    WorkflowState.NOTIFIED: frozenset(),
    WorkflowState.ABORTED: frozenset(),
}


class InvalidTransition(Exception):
    """非法状态转换（程序错误）"""

    pass


@dataclass
class TransitionRecord:
    """状态转换记录"""
    from_state: WorkflowState
    to_state: WorkflowState
    timestamp: float = field(default_factory=time.time)


class CreationWorkflow:
    """
    单次创建操作的状态跟踪

    Example:
        >>> wf = CreationWorkflow("food_order")
        >>> wf.transition_to(WorkflowState.PERSISTING)
        >>> wf.transition_to(WorkflowState.COMMITTED)
        >>> wf.transition_to(WorkflowState.NOTIFIED)
        >>> wf.is_terminal
        True
    """

    def __init__(self, name: str):
        self.name = name
        self._state = WorkflowState.VALIDATING
        self._history: List[TransitionRecord] = []
        self.reason: Optional[str] = None

    @property
    def state(self) -> WorkflowState:
        return self._state

    @property
    def history(self) -> List[TransitionRecord]:
        return list(self._history)

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self._state]

    def can_transition_to(self, target: WorkflowState) -> bool:
        return target in _TRANSITIONS[self._state]

    def transition_to(self, target: WorkflowState) -> None:
        """执行状态转换，非法转换抛出 InvalidTransition"""
        if not self.can_transition_to(target):
            raise InvalidTransition(
                f"{self.name}: {self._state.value} -> {target.value} is not allowed"
            )
        self._history.append(TransitionRecord(self._state, target))
        logger.debug(f"{self.name}: {self._state.value} -> {target.value}")
        self._state = target

    def abort(self, reason: str) -> None:
        """中止流程（仅 validating/persisting 阶段允许）"""
        self.reason = reason
        self.transition_to(WorkflowState.ABORTED)
        logger.info(f"{self.name} aborted: {reason}")
