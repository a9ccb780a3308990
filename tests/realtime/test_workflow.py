"""
创建流程状态机测试
"""
import pytest

from realtime.workflow import CreationWorkflow, WorkflowState, InvalidTransition


class TestCreationWorkflow:

    def test_happy_path(self):
        wf = CreationWorkflow("food_order")
        assert wf.state == WorkflowState.VALIDATING

        wf.transition_to(WorkflowState.PERSISTING)
        wf.transition_to(WorkflowState.COMMITTED)
        wf.transition_to(WorkflowState.NOTIFIED)

        assert wf.is_terminal
        assert [r.to_state for r in wf.history] == [
            WorkflowState.PERSISTING, WorkflowState.COMMITTED, WorkflowState.NOTIFIED,
        ]

    def test_abort_while_validating(self):
        wf = CreationWorkflow("food_order")
        wf.abort("Menu item 3 is not available")

        assert wf.state == WorkflowState.ABORTED
        assert wf.reason == "Menu item 3 is not available"
        assert wf.is_terminal

    def test_abort_while_persisting(self):
        wf = CreationWorkflow("service_request")
        wf.transition_to(WorkflowState.PERSISTING)
        wf.abort("Failed to create service request")

        assert wf.state == WorkflowState.ABORTED

    def test_cannot_abort_after_commit(self):
        wf = CreationWorkflow("service_request")
        wf.transition_to(WorkflowState.PERSISTING)
        wf.transition_to(WorkflowState.COMMITTED)

        with pytest.raises(InvalidTransition):
            wf.abort("too late")

    def test_cannot_skip_persisting(self):
        wf = CreationWorkflow("food_order")
        assert not wf.can_transition_to(WorkflowState.COMMITTED)
        with pytest.raises(InvalidTransition):
            wf.transition_to(WorkflowState.COMMITTED)
