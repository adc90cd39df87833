class ScExplorerError(Exception):
    """Base exception for all sc_explorer errors"""
    pass


class ConfigError(ScExplorerError):
    """Invalid or inconsistent global.json / explorer config"""
    pass


class DatasetConfigError(ConfigError):
    """Dataset block of the config can't be materialised (missing file, bad keys)"""
    pass


class PanelNotFoundError(ScExplorerError, KeyError):
    """No panel with the given id lives in the instance store"""

    def __init__(self, panel_id: str):
        self.panel_id = panel_id
        super().__init__(f"Panel '{panel_id}' not found")

    def __str__(self) -> str:
        return self.args[0]


class UnknownPanelKindError(ScExplorerError, KeyError):
    """No panel class registered for the given kind"""

    def __str__(self) -> str:
        return self.args[0]


class LifecycleError(ScExplorerError):
    """A panel was moved through an illegal lifecycle transition"""
    pass


class TrackingError(ScExplorerError):
    """Tracker (de)registration or flushing attempted mid-propagation"""
    pass


class SelectionError(ScExplorerError):
    """A selection operation is not possible for this panel"""
    pass


class SelectionDimensionError(SelectionError):
    """Transmitter and consumer disagree on the row/column dimension"""
    pass


class SelectionCycleError(SelectionError):
    """Wiring the requested selection source would create a cycle"""

    def __init__(self, consumer_id: str, source_id: str):
        self.consumer_id = consumer_id
        self.source_id = source_id
        super().__init__(
            f"Panel '{consumer_id}' can't receive selections from '{source_id}': "
            f"'{source_id}' already depends on '{consumer_id}'"
        )
