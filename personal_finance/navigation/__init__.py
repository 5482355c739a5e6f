"""Navigation state."""

from personal_finance.navigation.router import Destination, DestinationKind, NavigationRouter, Sheet, SheetKind

__all__ = ["NavigationRouter", "Destination", "DestinationKind", "Sheet", "SheetKind"]
