"""Best-effort mirror of registrations into a Google Sheet.

The local member store is the source of truth. Every call here swallows its
own failures after logging them, so the sheet may lag or drift.
"""
from typing import Any, List, Optional

from loguru import logger

from shared.config import Settings
from shared.models import FamilyMember
from shared.sheets_client import SheetsClient

SHEET_HEADER = [
    "Timestamp",
    "Name",
    "Email",
    "Phone",
    "City",
    "Relationship",
    "Connected Through",
    "Generation",
    "Family Branch",
    "Attendees",
    "Photo",
]
NAME_COLUMN = SHEET_HEADER.index("Name")
EMAIL_COLUMN = SHEET_HEADER.index("Email")


def member_to_row(member: FamilyMember) -> List[Any]:
    return [
        member.created_at.isoformat(),
        member.name,
        member.email,
        member.phone,
        member.city,
        member.relationship_type,
        member.connected_through,
        member.generation,
        member.family_branch,
        member.attendees,
        member.photo or "",
    ]


class SheetsSync:
    """Append and delete registration rows when Sheets sync is configured."""

    def __init__(self, settings: Settings, client: Optional[SheetsClient] = None):
        self.settings = settings
        self._client = client
        self._header_checked = False

    @property
    def enabled(self) -> bool:
        return self._client is not None or self.settings.sheets_configured

    def _get_client(self) -> SheetsClient:
        if self._client is None:
            self._client = SheetsClient(
                self.settings.google_sheet_id,
                self.settings.google_sheet_name,
                credentials_json=self.settings.google_sheets_credentials,
                credentials_path=self.settings.google_service_account_json_path,
            )
        return self._client

    def ensure_header(self, client: SheetsClient):
        if self._header_checked:
            return
        if not client.get_rows():
            client.write_header(SHEET_HEADER)
            logger.info("Wrote Google Sheets header row")
        self._header_checked = True

    def append_member(self, member: FamilyMember) -> bool:
        if not self.enabled:
            return False
        try:
            client = self._get_client()
            self.ensure_header(client)
            client.append_row(member_to_row(member))
            logger.info(f"Synced registration {member.id} to Google Sheets")
            return True
        except Exception as e:
            logger.error(f"Google Sheets append failed for {member.id}: {e}")
            return False

    def delete_member(self, member: FamilyMember) -> bool:
        """Remove the first row whose name and email match the member."""
        if not self.enabled:
            return False
        try:
            client = self._get_client()
            for index, row in enumerate(client.get_rows()):
                if len(row) <= EMAIL_COLUMN:
                    continue
                if row[NAME_COLUMN] == member.name and row[EMAIL_COLUMN] == member.email:
                    client.delete_row(index)
                    logger.info(f"Removed Google Sheets row for {member.id}")
                    return True
            logger.warning(f"No Google Sheets row matched {member.name} <{member.email}>")
            return False
        except Exception as e:
            logger.error(f"Google Sheets delete failed for {member.id}: {e}")
            return False
