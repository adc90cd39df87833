from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd
import plotly.graph_objs as go

from sc_explorer.core.base_panel import Annotator, BasePanel
from sc_explorer.core.bus import NotificationBus
from sc_explorer.core.capabilities import (
    PARAM_SELECTED,
    PARAM_SINGLE_SOURCE,
    MultiSelectionTransmitter,
    SingleSelectionTransmitter,
)
from sc_explorer.core.dataset import Dataset
from sc_explorer.core.engine import PanelScope, SelectionEngine
from sc_explorer.core.exceptions import PanelNotFoundError, SelectionError
from sc_explorer.core.flags import Flag
from sc_explorer.core.graph import render_order
from sc_explorer.core.lifecycle import PanelLifecycle, PanelState
from sc_explorer.core.panel_config import PanelConfig
from sc_explorer.core.panel_registry import PanelRegistry
from sc_explorer.core.selection import Selection, SelectionDimension, SelectionType
from sc_explorer.core.store import InstanceStore
from sc_explorer.validation.errors import PanelConfigError, ValidationIssue

logger = logging.getLogger(__name__)


@dataclass
class PanelOutput:
    """
    Latest rendered output of one panel.

    - data: whatever compute_data() returned (usually a DataFrame)
    - figure: the Plotly figure; an error figure if rendering failed
    - scope: the universe/highlight the output was computed for
    - error: message of the render failure, else None
    - supplementary: optional side output (e.g. a feature annotation)
    - selected: resolved identities of the panel's own active selection
    """
    data: Any = None
    figure: Optional[go.Figure] = None
    scope: Optional[PanelScope] = None
    error: Optional[str] = None
    supplementary: Any = None
    selected: Tuple[str, ...] = ()


class ExplorerContext:
    """
    One explorer session: dataset, panels, store, bus and selection engine.

    Passed to every layout/callback function instead of module-level globals,
    so several independent sessions can live in one process (tests do this).

    Every public mutator is one "external event": it mutates the store through
    the engine, then flushes the bus so all flagged panels are re-rendered
    before it returns. The delivered flags are kept in `last_delivered`.
    """

    def __init__(
            self,
            dataset: Dataset,
            registry: PanelRegistry,
            *,
            annotator: Optional[Annotator] = None,
    ) -> None:
        self.dataset = dataset
        self.registry = registry
        self.annotator = annotator

        self.store = InstanceStore()
        self.bus = NotificationBus(self.store)
        self.lifecycle = PanelLifecycle()
        self.panels: Dict[str, BasePanel] = {}
        self.engine = SelectionEngine(self.store, self.bus, self.panel)

        self.outputs: Dict[str, PanelOutput] = {}
        self.render_counts: Counter = Counter()
        self.selection_counts: Counter = Counter()
        self.last_delivered: List[Flag] = []

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def panel(self, panel_id: str) -> BasePanel:
        try:
            return self.panels[panel_id]
        except KeyError:
            raise PanelNotFoundError(panel_id) from None

    def config(self, panel_id: str) -> PanelConfig:
        return self.store.get(panel_id)

    def panel_ids(self) -> List[str]:
        return self.store.ids()

    def output(self, panel_id: str) -> PanelOutput:
        self.store.get(panel_id)
        return self.outputs.get(panel_id, PanelOutput())

    def scope(self, panel_id: str) -> PanelScope:
        return self.engine.scope(panel_id)

    def flush(self) -> List[Flag]:
        self.last_delivered = self.bus.flush()
        return self.last_delivered

    # ------------------------------------------------------------------
    # Panel lifecycle
    # ------------------------------------------------------------------
    def add_panel(
            self,
            kind: str,
            parameters: Optional[Mapping[str, Any]] = None,
            *,
            panel_id: Optional[str] = None,
            row_selection_source: Optional[str] = None,
            column_selection_source: Optional[str] = None,
    ) -> str:
        """
        Add a panel interactively and render it.

        :param kind: registered panel kind
        :param parameters: overrides on top of the kind's defaults
        :param panel_id: explicit id, else '<kind><n>'
        :return: the new panel's id

        Raises:
            UnknownPanelKindError: unknown kind
            PanelConfigError: parameters invalid in isolation (panel not added)
            SelectionError: the requested source can't feed this panel (panel not added)
        """
        panel = self.registry.create(kind, self.dataset, annotator=self.annotator)
        pid = panel_id or self.store.next_id(kind)
        if pid in self.store:
            raise ValueError(f"Panel '{pid}' already exists")

        params = panel.default_parameters()
        params.update(dict(parameters or {}))
        # Wired after the panel exists, like the row/column sources
        single_source = params.get(PARAM_SINGLE_SOURCE)
        if single_source is not None:
            params[PARAM_SINGLE_SOURCE] = None

        cfg = PanelConfig(id=pid, kind=kind, parameters=params)
        self._configure(panel, cfg)
        self._build_interface(pid)

        try:
            if row_selection_source is not None:
                self.engine.check_source(pid, SelectionDimension.ROW, row_selection_source)
                self.store.set_source(pid, SelectionDimension.ROW, row_selection_source)
            elif column_selection_source is not None:
                self.engine.check_source(pid, SelectionDimension.COLUMN, column_selection_source)
                self.store.set_source(pid, SelectionDimension.COLUMN, column_selection_source)
            if single_source is not None:
                self.engine.check_single_source(pid, single_source)
        except (SelectionError, PanelNotFoundError):
            self._discard(pid)
            raise

        self._bind_observers(pid)
        self._initial_render(pid)

        if single_source is not None:
            self.engine.connect_single(pid, single_source)
            self.flush()

        logger.info("panel_added", extra={"panel_id": pid, "kind": kind})
        return pid

    def remove_panel(self, panel_id: str) -> List[str]:
        """
        Remove a panel; every panel that referenced it loses the reference
        and gets a clean update.

        :return: ids of the affected panels
        """
        self.store.get(panel_id)
        self.lifecycle.advance(panel_id, PanelState.REMOVED)
        self.bus.untrack(panel_id)
        affected = self.store.remove(panel_id)
        self.panels.pop(panel_id, None)
        self.outputs.pop(panel_id, None)
        self.lifecycle.forget(panel_id)

        for dependent in affected:
            self.bus.request_clean_update(dependent)
        self.flush()

        logger.info("panel_removed", extra={"panel_id": panel_id, "affected": affected})
        return affected

    def _configure(self, panel: BasePanel, cfg: PanelConfig) -> None:
        issues = panel.validate(cfg)
        if issues:
            logger.warning(
                "panel_config_rejected",
                extra={"panel_id": cfg.id, "kind": cfg.kind, "codes": [i.code for i in issues]},
            )
            raise PanelConfigError(issues)
        self.lifecycle.advance(cfg.id, PanelState.CONFIGURED)
        self.store.add(cfg)
        self.panels[cfg.id] = panel

    def _build_interface(self, panel_id: str) -> None:
        self._refine(panel_id)
        self.lifecycle.advance(panel_id, PanelState.INTERFACE_BUILT)

    def _refine(self, panel_id: str) -> Dict[str, Any]:
        cfg = self.store.get(panel_id)
        corrections = self.panels[panel_id].refine(cfg)
        if corrections:
            logger.info(
                "panel_refined",
                extra={
                    "panel_id": panel_id,
                    "corrections": {
                        name: {"from": cfg.parameters.get(name), "to": value}
                        for name, value in corrections.items()
                    },
                },
            )
            self.store.update(panel_id, corrections)
        return corrections

    def _bind_observers(self, panel_id: str) -> None:
        self.bus.track(panel_id, self._on_needs_update)
        self.bus.track_selection(panel_id, self._on_selection_changed)
        self.lifecycle.advance(panel_id, PanelState.OBSERVERS_BOUND)

    def _initial_render(self, panel_id: str) -> None:
        self._render(panel_id)
        self.lifecycle.advance(panel_id, PanelState.RENDERING)

    def _discard(self, panel_id: str) -> None:
        self.lifecycle.advance(panel_id, PanelState.REMOVED)
        self.lifecycle.forget(panel_id)
        self.store.remove(panel_id)
        self.panels.pop(panel_id, None)

    # ------------------------------------------------------------------
    # Trackers
    # ------------------------------------------------------------------
    def _on_needs_update(self, panel_id: str) -> None:
        self.lifecycle.advance(panel_id, PanelState.UPDATING)
        try:
            self._render(panel_id)
        finally:
            self.lifecycle.advance(panel_id, PanelState.RENDERING)

    def _on_selection_changed(self, panel_id: str) -> None:
        self.selection_counts[panel_id] += 1
        output = self.outputs.get(panel_id)
        if output is None:
            return
        if output.scope is not None:
            output.selected = self._selected_identities(panel_id, output.scope)
        output.supplementary = self.panels[panel_id].supplementary(self.store.get(panel_id))

    def _selected_identities(self, panel_id: str, scope: PanelScope) -> Tuple[str, ...]:
        panel = self.panels[panel_id]
        cfg = self.store.get(panel_id)
        if isinstance(panel, MultiSelectionTransmitter):
            return tuple(panel.active_selection_identities(cfg, scope))
        if isinstance(panel, SingleSelectionTransmitter):
            selected = panel.single_selection(cfg)
            return (selected,) if selected is not None else ()
        return ()

    def _render(self, panel_id: str) -> None:
        cfg = self.store.get(panel_id)
        panel = self.panels[panel_id]
        try:
            scope = self.engine.scope(panel_id)
            data = panel.timed_compute(cfg, scope)
            figure = panel.render_figure(data, cfg)
            output = PanelOutput(data=data, figure=figure, scope=scope)
            output.selected = self._selected_identities(panel_id, scope)
        except Exception as exc:
            logger.exception(
                "panel_render_failed",
                extra={"panel_id": panel_id, "kind": cfg.kind},
            )
            output = PanelOutput(
                figure=BasePanel.empty_figure(f"Something went wrong while rendering {panel_id}"),
                error=str(exc),
            )

        output.supplementary = panel.supplementary(cfg)
        self.outputs[panel_id] = output
        self.render_counts[panel_id] += 1

    # ------------------------------------------------------------------
    # Parameters and wiring
    # ------------------------------------------------------------------
    def update_parameter(self, panel_id: str, name: str, value: Any) -> bool:
        """
        Change one parameter. Protected parameters void the panel's own
        selections (clean update), others trigger a plain update.

        :return: False if the value was unchanged

        Raises:
            PanelConfigError: the new value is invalid in isolation; nothing changes
        """
        if name == PARAM_SINGLE_SOURCE:
            return self.set_single_selection_source(panel_id, value)
        cfg = self.store.get(panel_id)
        panel = self.panel(panel_id)
        if cfg.parameters.get(name) == value:
            return False
        if name == PARAM_SELECTED:
            self.set_single_selection(panel_id, value)
            return True

        candidate = PanelConfig.from_dict(cfg.to_dict())
        candidate.parameters[name] = value
        issues = panel.validate(candidate)
        if issues:
            raise PanelConfigError(issues)

        self.store.set(panel_id, name, value)
        self._refine(panel_id)

        if name in panel.protected_parameters():
            self.bus.request_clean_update(panel_id)
        else:
            self.bus.request_update(panel_id)
        self.flush()

        logger.info("parameter_changed", extra={"panel_id": panel_id, "parameter": name})
        return True

    def set_selection_source(
            self,
            panel_id: str,
            source_id: Optional[str],
            dimension: Optional[SelectionDimension] = None,
    ) -> bool:
        """
        Wire `panel_id` to receive multiple selections from `source_id`
        (None unwires). The dimension defaults to the one the panel consumes.

        Raises:
            SelectionDimensionError, SelectionCycleError
        """
        panel = self.panel(panel_id)
        if dimension is None:
            dimension = getattr(panel, "consume_dimension", SelectionDimension.NONE)
        changed = self.engine.connect(panel_id, dimension, source_id)
        self.flush()
        return changed

    def set_single_selection_source(self, panel_id: str, source_id: Optional[str]) -> bool:
        changed = self.engine.connect_single(panel_id, source_id)
        self.flush()
        return changed

    # ------------------------------------------------------------------
    # Selections
    # ------------------------------------------------------------------
    def set_active_selection(
            self,
            panel_id: str,
            identities: Iterable[str],
            selection_type: SelectionType = SelectionType.LASSO,
            payload: Optional[dict] = None,
    ) -> List[Flag]:
        self.engine.set_active_selection(panel_id, identities, selection_type, payload)
        return self.flush()

    def clear_active_selection(self, panel_id: str) -> List[Flag]:
        self.engine.clear_active_selection(panel_id)
        return self.flush()

    def save_active_selection(self, panel_id: str) -> Selection:
        saved = self.engine.save_active_selection(panel_id)
        self.flush()
        return saved

    def delete_saved_selection(self, panel_id: str, index: int = -1) -> Selection:
        deleted = self.engine.delete_saved_selection(panel_id, index)
        self.flush()
        return deleted

    def set_single_selection(self, panel_id: str, identity: Optional[str]) -> List[str]:
        consumers = self.engine.set_single_selection(panel_id, identity)
        self.flush()
        return consumers

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    def snapshot(self) -> List[Dict[str, Any]]:
        return self.store.snapshot()

    def restore(self, snapshot: Sequence[Mapping[str, Any]]) -> List[str]:
        """
        Replace every panel with the ones described by `snapshot`.

        The snapshot is validated completely before anything is torn down, so
        an invalid snapshot leaves the current session untouched.
        """
        staged = self._stage(snapshot)

        for pid in self.store.ids():
            self.bus.untrack(pid)
        self.store.clear()
        self.lifecycle.reset()
        self.panels.clear()
        self.outputs.clear()
        self.render_counts.clear()
        self.selection_counts.clear()

        return self._install(staged)

    def bootstrap(self, panels: Sequence[Mapping[str, Any]]) -> List[str]:
        """
        Create the initial panels of a session. Entries may omit `id`
        (assigned as '<kind><n>') and any field except `kind`.
        """
        if len(self.store):
            raise ValueError("bootstrap() needs an empty session; use restore() instead")
        return self._install(self._stage(panels))

    def _stage(
            self,
            entries: Sequence[Mapping[str, Any]],
    ) -> List[Tuple[BasePanel, PanelConfig]]:
        staging = InstanceStore()
        staged: List[Tuple[BasePanel, PanelConfig]] = []
        for i, raw in enumerate(entries):
            kind = raw.get("kind")
            if not isinstance(kind, str) or not kind:
                raise PanelConfigError([ValidationIssue("PANEL_KIND_MISSING", f"panels[{i}] has no kind.")])
            panel = self.registry.create(kind, self.dataset, annotator=self.annotator)
            data = dict(raw)
            data["id"] = raw.get("id") or staging.next_id(kind)

            params = panel.default_parameters()
            params.update(dict(raw.get("parameters") or {}))
            data["parameters"] = params

            cfg = PanelConfig.from_dict(data)
            issues = panel.validate(cfg)
            if issues:
                raise PanelConfigError(issues)
            staging.add(cfg)
            staged.append((panel, cfg))
        return staged

    def _install(self, staged: List[Tuple[BasePanel, PanelConfig]]) -> List[str]:
        # Pass 1: every panel exists and is refined, with no wiring yet
        wiring: Dict[str, Tuple[Optional[str], Optional[str], Optional[str]]] = {}
        for panel, cfg in staged:
            wiring[cfg.id] = (
                cfg.row_selection_source,
                cfg.column_selection_source,
                cfg.parameters.get(PARAM_SINGLE_SOURCE),
            )
            cfg.row_selection_source = None
            cfg.column_selection_source = None
            if PARAM_SINGLE_SOURCE in cfg.parameters:
                cfg.parameters[PARAM_SINGLE_SOURCE] = None
            self._configure(panel, cfg)
            self._build_interface(cfg.id)

        # Pass 2: wire sources, dropping what can't be honoured
        for pid, (row_src, col_src, single_src) in wiring.items():
            for dimension, source in (
                    (SelectionDimension.ROW, row_src),
                    (SelectionDimension.COLUMN, col_src),
            ):
                if source is None:
                    continue
                try:
                    if source not in self.store:
                        raise SelectionError(f"Source panel '{source}' does not exist")
                    self.engine.check_source(pid, dimension, source)
                except SelectionError as exc:
                    logger.warning(
                        "selection_source_dropped",
                        extra={"panel_id": pid, "source": source, "reason": str(exc)},
                    )
                    continue
                self.store.set_source(pid, dimension, source)
                break

            if single_src is not None:
                try:
                    if single_src not in self.store:
                        raise SelectionError(f"Source panel '{single_src}' does not exist")
                    self.engine.check_single_source(pid, single_src)
                except SelectionError as exc:
                    logger.warning(
                        "single_selection_source_dropped",
                        extra={"panel_id": pid, "source": single_src, "reason": str(exc)},
                    )
                    continue
                self.store.set(pid, PARAM_SINGLE_SOURCE, single_src)

        # Pass 3: observers, then output with transmitters before their consumers
        for pid in self.store.ids():
            self._bind_observers(pid)
        for pid in render_order(self.store):
            self._initial_render(pid)

        logger.info("session_installed", extra={"n_panels": len(self.store)})
        return self.store.ids()

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------
    def export_panel(self, panel_id: str) -> Tuple[str, bytes]:
        """
        :return: (file name, file content) of the panel's current output

        Raises:
            NotImplementedError: the panel kind has no export
        """
        panel = self.panel(panel_id)
        if panel.export_suffix is None:
            raise NotImplementedError(f"{panel.kind} does not support export")
        output = self.output(panel_id)
        data = output.data if output.data is not None else pd.DataFrame()
        figure = output.figure if output.figure is not None else go.Figure()
        return f"{panel_id}{panel.export_suffix}", panel.export(data, figure)
