"""
Centralized navigation state.

Holds the stack of typed destinations and the modal sheet currently shown.
The router is a pure state container; hosts observe it and render.
"""

import enum
import uuid
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict

from personal_finance.core.logging import get_logger
from personal_finance.db.models import TransactionType

logger = get_logger(__name__)


class DestinationKind(str, enum.Enum):
    ACCOUNT_DETAIL = "account_detail"
    CONTO_DETAIL = "conto_detail"
    CREATE_ACCOUNT = "create_account"
    CREATE_CONTO = "create_conto"
    CREATE_TRANSACTION = "create_transaction"
    CREATE_TRANSFER = "create_transfer"
    SETTINGS = "settings"
    EXPORT = "export"


class Destination(BaseModel):
    """One entry of the navigation path."""

    model_config = ConfigDict(frozen=True)

    kind: DestinationKind
    account_id: Optional[uuid.UUID] = None
    conto_id: Optional[uuid.UUID] = None
    transaction_type: Optional[TransactionType] = None

    @classmethod
    def account_detail(cls, account_id: uuid.UUID) -> "Destination":
        return cls(kind=DestinationKind.ACCOUNT_DETAIL, account_id=account_id)

    @classmethod
    def conto_detail(cls, conto_id: uuid.UUID) -> "Destination":
        return cls(kind=DestinationKind.CONTO_DETAIL, conto_id=conto_id)

    @classmethod
    def settings(cls) -> "Destination":
        return cls(kind=DestinationKind.SETTINGS)


class SheetKind(str, enum.Enum):
    ACCOUNT_CREATION = "account_creation"
    CONTO_CREATION = "conto_creation"
    TRANSACTION_CREATION = "transaction_creation"
    TRANSFER = "transfer"
    EXPORT = "export"


class Sheet(BaseModel):
    """Modal presentation with the context it was opened for."""

    model_config = ConfigDict(frozen=True)

    kind: SheetKind
    account_id: Optional[uuid.UUID] = None
    conto_id: Optional[uuid.UUID] = None
    transaction_type: Optional[TransactionType] = None


class NavigationRouter:
    """
    Navigation path plus at most one active sheet.

    State only changes through the methods below.
    """

    def __init__(self) -> None:
        self._path: list[Destination] = []
        self.active_sheet: Optional[Sheet] = None
        self.selected_account_id: Optional[uuid.UUID] = None

    @property
    def path(self) -> tuple[Destination, ...]:
        return tuple(self._path)

    @property
    def depth(self) -> int:
        return len(self._path)

    @property
    def top(self) -> Optional[Destination]:
        return self._path[-1] if self._path else None

    # Path

    def push(self, destination: Destination) -> None:
        self._path.append(destination)
        logger.debug("Navigate", extra={"destination": destination.kind.value, "depth": self.depth})

    def pop(self) -> Optional[Destination]:
        """Go back one level; no-op at the root."""
        if not self._path:
            return None
        return self._path.pop()

    def pop_to_root(self) -> None:
        self._path.clear()

    def replace_path(self, destinations: Iterable[Destination]) -> None:
        self._path = list(destinations)

    def navigate_to_account_detail(self, account_id: uuid.UUID) -> None:
        self.selected_account_id = account_id
        self.push(Destination.account_detail(account_id))

    def navigate_to_conto_detail(self, conto_id: uuid.UUID) -> None:
        self.push(Destination.conto_detail(conto_id))

    def navigate_to_settings(self) -> None:
        self.push(Destination.settings())

    def navigate_to_account(self, account_id: uuid.UUID, conto_id: Optional[uuid.UUID] = None) -> None:
        """Deep link: account detail, optionally followed by one of its conti."""
        self.navigate_to_account_detail(account_id)
        if conto_id is not None:
            self.navigate_to_conto_detail(conto_id)

    def select_account(self, account_id: uuid.UUID) -> None:
        """Set the selected account without navigating."""
        self.selected_account_id = account_id

    # Sheets

    def present_sheet(self, sheet: Sheet) -> None:
        """Show ``sheet``, replacing any sheet already shown."""
        self.active_sheet = sheet

    def dismiss_sheet(self) -> None:
        self.active_sheet = None

    def present_account_creation(self) -> None:
        self.present_sheet(Sheet(kind=SheetKind.ACCOUNT_CREATION))

    def present_conto_creation(self, account_id: uuid.UUID) -> None:
        self.present_sheet(Sheet(kind=SheetKind.CONTO_CREATION, account_id=account_id))

    def present_transaction_creation(
        self,
        conto_id: uuid.UUID,
        transaction_type: TransactionType = TransactionType.EXPENSE,
    ) -> None:
        self.present_sheet(
            Sheet(
                kind=SheetKind.TRANSACTION_CREATION,
                conto_id=conto_id,
                transaction_type=transaction_type,
            )
        )

    def present_transfer(self, conto_id: uuid.UUID) -> None:
        self.present_sheet(Sheet(kind=SheetKind.TRANSFER, conto_id=conto_id))

    def present_export(self) -> None:
        self.present_sheet(Sheet(kind=SheetKind.EXPORT, account_id=self.selected_account_id))
