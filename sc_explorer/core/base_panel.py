from __future__ import annotations

import copy
import logging
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Callable, Dict, FrozenSet, List, Optional

import plotly.graph_objs as go

from sc_explorer.core.dataset import Dataset
from sc_explorer.core.selection import SelectionDimension
from sc_explorer.validation.errors import ValidationIssue

if TYPE_CHECKING:
    from sc_explorer.core.engine import PanelScope
    from sc_explorer.core.panel_config import PanelConfig

logger = logging.getLogger(__name__)

Annotator = Callable[[str], Optional[str]]


class BasePanel(ABC):
    """
    Abstract base class for all panel kinds.

    Defines the contract that every panel in the app must follow
    - expose a 'kind' - registry key and id prefix ("ReducedDimensionPlot")
    - expose a 'label' - used for UI/human-readable applications
    - expose a 'dimension' - the axis of the items it displays (rows = features,
      columns = cells)
    - implement 'compute_data' - compute the data given the panel's config and scope
    - implement 'render_figure' - render the figure using Plotly

    Panels hold no state of their own: the config is read from the InstanceStore
    and passed in on every call. Selection behaviour comes from the capability
    mixins in `sc_explorer.core.capabilities`.
    """

    kind: str = None
    label: str = None
    dimension: SelectionDimension = SelectionDimension.NONE

    defaults: Dict[str, Any] = {}
    protected: FrozenSet[str] = frozenset()

    def __init__(self, dataset: Dataset, *, annotator: Optional[Annotator] = None):
        self.dataset = dataset
        self.annotator = annotator

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------
    @classmethod
    def default_parameters(cls) -> Dict[str, Any]:
        """
        Merge the `defaults` of every class in the MRO, most specific last,
        so capability defaults compose with the kind's own.
        """
        merged: Dict[str, Any] = {}
        for klass in reversed(cls.__mro__):
            merged.update(klass.__dict__.get("defaults", {}))
        return copy.deepcopy(merged)

    @classmethod
    def protected_parameters(cls) -> FrozenSet[str]:
        """Parameters whose change voids the panel's own selections."""
        names: set[str] = set()
        for klass in cls.__mro__:
            names |= set(klass.__dict__.get("protected", ()))
        return frozenset(names)

    def validate(self, config: PanelConfig) -> List[ValidationIssue]:
        """
        Static checks on the parameters in isolation (no dataset access).
        Subclasses extend the list via super().
        """
        issues: List[ValidationIssue] = []
        unknown = sorted(set(config.parameters) - set(self.default_parameters()))
        if unknown:
            issues.append(
                ValidationIssue(
                    "PANEL_UNKNOWN_PARAMETER",
                    f"{config.kind} has no parameter(s) {unknown}.",
                )
            )
        return issues

    def refine(self, config: PanelConfig) -> Dict[str, Any]:
        """
        Correct parameters against the live dataset.

        :return: mapping of parameter name -> corrected value; empty if
                 everything is valid. Must be deterministic.
        """
        return {}

    def universe(self) -> List[str]:
        """Every identity this panel could show, before any restriction."""
        return self.dataset.names(self.dimension)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    @abstractmethod
    def compute_data(self, config: PanelConfig, scope: PanelScope) -> Any:
        """
        Compute the data for the panel's current configuration
        :param config: the panel's PanelConfig, read from the store
        :param scope: the identities the panel may show, plus any highlighted ones
        :return: data: a dataframe containing the data to plot
        """
        raise NotImplementedError()

    @abstractmethod
    def render_figure(self, data: Any, config: PanelConfig) -> go.Figure:
        """
        Render the figure given the computed data
        :param data: the data provided by compute_data()
        :param config: the panel's PanelConfig
        :return: the Plotly figure for these parameters
        """
        raise NotImplementedError()

    def timed_compute(self, config: PanelConfig, scope: PanelScope) -> Any:
        start = time.perf_counter()
        data = self.compute_data(config, scope)
        logger.info(
            "compute_done",
            extra={
                "panel_id": config.id,
                "kind": self.kind,
                "n_universe": len(scope.universe),
                "elapsed_ms": round((time.perf_counter() - start) * 1000.0, 2),
            },
        )
        return data

    def supplementary(self, config: PanelConfig) -> Optional[Any]:
        """Optional extra output shown next to the figure (e.g. an annotation)."""
        return None

    def export(self, data: Any, figure: go.Figure) -> bytes:
        raise NotImplementedError(f"{self.kind} does not support export")

    export_suffix: Optional[str] = None

    # ------------------------------------------------------------------
    # Common helpers for all panels
    # ------------------------------------------------------------------
    @staticmethod
    def empty_figure(message: str) -> go.Figure:
        """
        Standardised 'no data' figure used by all panels.
        """
        fig = go.Figure()
        fig.update_layout(
            title=message,
            xaxis={"visible": False},
            yaxis={"visible": False},
        )
        return fig

    def label_for(self, config: PanelConfig) -> str:
        return f"{self.label} ({config.id})"
