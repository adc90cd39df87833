"""
Capability mixins composed into concrete panel kinds.

A panel kind is a BasePanel subclass plus the capabilities it implements:

    class ReducedDimensionPlot(ColumnTransmitter, ColumnConsumer,
                               SingleSelectionConsumer, FigureExport, BasePanel):
        ...

Each capability carries its own default parameters, protected parameters,
validation and refinement, chained cooperatively through `super()`. The
engine only ever asks `isinstance(panel, <capability>)`, never for a kind.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional

import plotly.graph_objs as go

from sc_explorer.core.selection import Selection, SelectionDimension, SelectionMode
from sc_explorer.validation.errors import ValidationIssue

if TYPE_CHECKING:
    import pandas as pd

    from sc_explorer.core.engine import PanelScope
    from sc_explorer.core.panel_config import PanelConfig

PARAM_RESTRICT = "restrict"
PARAM_SELECTION_MODE = "selection_mode"
PARAM_SAVED_INDEX = "saved_index"
PARAM_DYNAMIC_SOURCE = "dynamic_source"
PARAM_SELECTED = "selected"
PARAM_SINGLE_SOURCE = "single_selection_source"


# ------------------------------------------------------------------
# Multiple selections
# ------------------------------------------------------------------
class MultiSelectionTransmitter:
    """Panel whose active/saved selections can feed other panels."""

    transmit_dimension: SelectionDimension = SelectionDimension.NONE

    def available_count(self, config: PanelConfig, scope: PanelScope) -> int:
        """Total number of items a user could select on this panel right now."""
        return len(scope.universe)

    def active_selection_identities(self, config: PanelConfig, scope: PanelScope) -> List[str]:
        """Resolved names of the live selection, limited to what the panel shows."""
        return self.selection_identities(config.active_selection, scope)

    @staticmethod
    def selection_identities(selection: Optional[Selection], scope: PanelScope) -> List[str]:
        if selection is None:
            return []
        members = set(selection.identities)
        return [ident for ident in scope.universe if ident in members]


class RowTransmitter(MultiSelectionTransmitter):
    transmit_dimension = SelectionDimension.ROW


class ColumnTransmitter(MultiSelectionTransmitter):
    transmit_dimension = SelectionDimension.COLUMN


class MultiSelectionConsumer:
    """
    Panel that can receive a multiple selection from one upstream transmitter.

    - restrict=True: the panel's universe is narrowed to the received identities
    - restrict=False: the received identities are only highlighted
    """

    consume_dimension: SelectionDimension = SelectionDimension.NONE

    defaults: Dict[str, Any] = {
        PARAM_RESTRICT: False,
        PARAM_SELECTION_MODE: SelectionMode.ACTIVE.value,
        PARAM_SAVED_INDEX: 0,
        PARAM_DYNAMIC_SOURCE: False,
    }
    protected = frozenset({PARAM_RESTRICT, PARAM_SELECTION_MODE, PARAM_SAVED_INDEX})

    def is_restricted_by(self, config: PanelConfig, source_id: str) -> bool:
        return bool(config.parameters.get(PARAM_RESTRICT, False))

    def is_invalidated_by(self, config: PanelConfig, source_id: str) -> bool:
        """
        Whether this panel's own selections lose their meaning when the
        selection of `source_id` changes. Restricted panels change their
        universe, so by default they are invalidated.
        """
        return self.is_restricted_by(config, source_id)

    def selection_mode(self, config: PanelConfig) -> SelectionMode:
        return SelectionMode(config.parameters.get(PARAM_SELECTION_MODE, SelectionMode.ACTIVE.value))

    def validate(self, config: PanelConfig) -> List[ValidationIssue]:
        issues = super().validate(config)
        params = config.parameters

        try:
            SelectionMode(params.get(PARAM_SELECTION_MODE))
        except ValueError:
            issues.append(
                ValidationIssue(
                    "PANEL_SELECTION_MODE",
                    f"selection_mode must be one of {[m.value for m in SelectionMode]}, "
                    f"got {params.get(PARAM_SELECTION_MODE)!r}.",
                )
            )

        saved_index = params.get(PARAM_SAVED_INDEX)
        if isinstance(saved_index, bool) or not isinstance(saved_index, int) or saved_index < 0:
            issues.append(
                ValidationIssue("PANEL_SAVED_INDEX", f"saved_index must be an int >= 0, got {saved_index!r}.")
            )

        for flag in (PARAM_RESTRICT, PARAM_DYNAMIC_SOURCE):
            if not isinstance(params.get(flag), bool):
                issues.append(ValidationIssue("PANEL_FLAG_TYPE", f"{flag} must be a boolean."))

        wrong_dim = (
            SelectionDimension.ROW if self.consume_dimension is SelectionDimension.COLUMN
            else SelectionDimension.COLUMN
        )
        if config.source_for(wrong_dim) is not None:
            issues.append(
                ValidationIssue(
                    "PANEL_SOURCE_DIMENSION",
                    f"{config.kind} receives {self.consume_dimension.value} selections only.",
                )
            )
        return issues


class RowConsumer(MultiSelectionConsumer):
    consume_dimension = SelectionDimension.ROW


class ColumnConsumer(MultiSelectionConsumer):
    consume_dimension = SelectionDimension.COLUMN


# ------------------------------------------------------------------
# Single selections
# ------------------------------------------------------------------
class SingleSelectionTransmitter:
    """Panel exposing one selected identity (e.g. the clicked table row)."""

    single_transmit_dimension: SelectionDimension = SelectionDimension.NONE

    defaults: Dict[str, Any] = {PARAM_SELECTED: None}

    def single_selection(self, config: PanelConfig) -> Optional[str]:
        return config.parameters.get(PARAM_SELECTED)

    def refine(self, config: PanelConfig) -> Dict[str, Any]:
        fixes = super().refine(config)
        selected = config.parameters.get(PARAM_SELECTED)
        if selected is not None and str(selected) not in self.dataset.names(self.single_transmit_dimension):
            fixes[PARAM_SELECTED] = None
        return fixes


class SingleRowTransmitter(SingleSelectionTransmitter):
    single_transmit_dimension = SelectionDimension.ROW


class SingleColumnTransmitter(SingleSelectionTransmitter):
    single_transmit_dimension = SelectionDimension.COLUMN


class SingleSelectionConsumer:
    """Panel reacting to the identity selected on another panel."""

    single_consume_dimension: SelectionDimension = SelectionDimension.ROW

    defaults: Dict[str, Any] = {PARAM_SINGLE_SOURCE: None}

    def on_single_selection(self, config: PanelConfig, identity: str) -> Dict[str, Any]:
        """
        :param config: this panel's config (read only)
        :param identity: the identity now selected on the source panel
        :return: parameter updates to apply through the store
        """
        return {}


# ------------------------------------------------------------------
# Export
# ------------------------------------------------------------------
class FigureExport:
    export_suffix = ".html"

    def export(self, data: Any, figure: go.Figure) -> bytes:
        return figure.to_html(include_plotlyjs="cdn", full_html=True).encode("utf-8")


class TableExport:
    export_suffix = ".csv"

    def export(self, data: pd.DataFrame, figure: go.Figure) -> bytes:
        return data.to_csv(index=True).encode("utf-8")
