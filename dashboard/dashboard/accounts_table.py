"""Admin and staff account tables of the dashboard.

A table keeps the accounts of one role in memory, narrows them down by a
search term, sorts them by name and deletes them through the Accounts API.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import requests

logger = logging.getLogger("dashboard.accounts_table")


@dataclass
class Notification:
    type: str
    message: str


def matches(account: dict, search_term: str) -> bool:
    fullname = account.get("fullName")
    return bool(fullname) and search_term.lower() in fullname.lower()


def filter_by_name(accounts: list[dict], search_term: str) -> list[dict]:
    return [account for account in accounts if matches(account, search_term)]


def sort_by_name(accounts: list[dict], direction: str) -> list[dict]:
    """Sorts by full name, ``"az"`` ascending and ``"za"`` descending.

    Any other direction keeps the current order.
    """
    if direction not in ("az", "za"):
        return list(accounts)
    return sorted(
        accounts,
        key=lambda account: (account.get("fullName") or "").lower(),
        reverse=direction == "za",
    )


class AccountsTable:
    def __init__(
        self,
        role: str,
        base_url: str,
        confirm: Callable[[str], bool],
        current_account_id: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.role = role
        self.base_url = base_url.rstrip("/")
        self.confirm = confirm
        self.current_account_id = current_account_id
        self.session = session or requests.Session()
        self.accounts: list[dict] = []

    def fetch(self) -> Optional[Notification]:
        """Reloads the accounts of this table's role.

        Returns:
            An error notification when the accounts can't be fetched
        """
        try:
            response = self.session.get(f"{self.base_url}/users")
            response.raise_for_status()
            data = response.json() or []
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Error fetching {self.role} accounts: {e}")
            return Notification("error", f"Failed to fetch {self.role} accounts.")

        self.accounts = [
            account
            for account in data
            if account.get("role") == self.role and account.get("fullName")
        ]
        return None

    def visible_rows(self, search_term: str = "") -> list[dict]:
        return filter_by_name(self.accounts, search_term)

    def sort(self, direction: str) -> None:
        self.accounts = sort_by_name(self.accounts, direction)

    def delete(self, account_id: str) -> Optional[Notification]:
        """Deletes an account after confirmation and reloads the table.

        Returns:
            Notification describing the result, None if the user backed out
        """
        if self.current_account_id is not None and account_id == self.current_account_id:
            return Notification("error", "You cannot delete your own account.")

        if not self.confirm(f"Are you sure you want to delete this {self.role}?"):
            return None

        try:
            response = self.session.delete(f"{self.base_url}/users/{account_id}")
            body = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Delete {self.role} error: {e}")
            return Notification("error", f"Server error while deleting {self.role}.")

        if body.get("success"):
            self.fetch()
            return Notification(
                "success", f"{self.role.capitalize()} deleted successfully."
            )
        return Notification(
            "error", body.get("message") or f"Failed to delete {self.role}."
        )
