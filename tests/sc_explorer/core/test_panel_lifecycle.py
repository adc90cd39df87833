import pytest

from sc_explorer.core.exceptions import LifecycleError
from sc_explorer.core.lifecycle import PanelLifecycle, PanelState


def test_full_lifecycle():
    lc = PanelLifecycle()
    assert lc.state("P1") is PanelState.UNINITIALIZED

    for state in (
        PanelState.CONFIGURED,
        PanelState.INTERFACE_BUILT,
        PanelState.OBSERVERS_BOUND,
        PanelState.RENDERING,
        PanelState.UPDATING,
        PanelState.RENDERING,
    ):
        lc.advance("P1", state)

    assert lc.is_live("P1")
    assert lc.panels_in(PanelState.RENDERING) == ["P1"]

    lc.advance("P1", PanelState.REMOVED)
    lc.forget("P1")
    assert lc.state("P1") is PanelState.UNINITIALIZED


def test_illegal_transition_raises():
    lc = PanelLifecycle()
    with pytest.raises(LifecycleError):
        lc.advance("P1", PanelState.RENDERING)

    lc.advance("P1", PanelState.CONFIGURED)
    with pytest.raises(LifecycleError):
        lc.advance("P1", PanelState.UPDATING)


def test_removed_is_terminal_and_reachable_early():
    lc = PanelLifecycle()
    lc.advance("P1", PanelState.CONFIGURED)
    lc.advance("P1", PanelState.REMOVED)
    with pytest.raises(LifecycleError):
        lc.advance("P1", PanelState.RENDERING)


def test_forget_requires_removal():
    lc = PanelLifecycle()
    lc.advance("P1", PanelState.CONFIGURED)
    with pytest.raises(LifecycleError):
        lc.forget("P1")
