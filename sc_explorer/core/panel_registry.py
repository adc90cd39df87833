from __future__ import annotations

from typing import Dict, List, Optional, Type

from .base_panel import Annotator, BasePanel
from .dataset import Dataset
from .exceptions import UnknownPanelKindError
from .selection import SelectionDimension


class PanelRegistry:
    """
    Registry mapping a panel kind tag to its implementation class.

    Purpose:
    - Decouples the context/UI layers from hardcoded panel implementations by exposing {@link create(kind, dataset)}
    - Drives the "add panel" menu and the source dropdowns from the registered kinds

    Design Notes:
    - Stores the subclasses of {@link BasePanel}, not instances; a panel object is
      stateless and is created once per panel id by the ExplorerContext
    - Enforces variants:
        * only {@link BasePanel} subclasses can be registered
        * each 'kind' is unique across the registry
    """

    def __init__(self):
        self._panels: Dict[str, Type[BasePanel]] = {}

    def register(self, panel_cls: Type[BasePanel]) -> None:
        """
        Register a {@link BasePanel} subclass with the registry

        :param panel_cls: the subclass of {@link BasePanel}

        Raises:
            TypeError: if panel_cls is not a subclass of {@link BasePanel}
            ValueError: if the kind is missing or already registered
        """
        if not isinstance(panel_cls, type) or not issubclass(panel_cls, BasePanel):
            raise TypeError(f"Panel '{getattr(panel_cls, 'kind', panel_cls)}' must be a subclass of BasePanel")

        if not panel_cls.kind:
            raise ValueError(f"Panel class {panel_cls.__name__} does not define a 'kind'")

        if panel_cls.kind in self._panels:
            raise ValueError(f"Panel kind '{panel_cls.kind}' already registered")

        self._panels[panel_cls.kind] = panel_cls

    def get(self, kind: str) -> Type[BasePanel]:
        try:
            return self._panels[kind]
        except KeyError:
            raise UnknownPanelKindError(f"Panel kind '{kind}' not found") from None

    def create(self, kind: str, dataset: Dataset, *, annotator: Optional[Annotator] = None) -> BasePanel:
        """
        Instantiate the panel class registered for `kind`.

        Raises:
            UnknownPanelKindError: if no panel with the given kind exists in the registry
        """
        return self.get(kind)(dataset, annotator=annotator)

    def __contains__(self, kind: object) -> bool:
        return kind in self._panels

    def kinds(self) -> List[str]:
        return list(self._panels)

    def all_classes(self) -> List[Type[BasePanel]]:
        """Used at UI layer to build the "add panel" menu."""
        return list(self._panels.values())

    def transmitters_of(self, dimension: SelectionDimension) -> List[str]:
        """Kinds that transmit multiple selections along `dimension`."""
        return [
            kind for kind, cls in self._panels.items()
            if getattr(cls, "transmit_dimension", SelectionDimension.NONE) is dimension
        ]
