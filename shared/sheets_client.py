"""Google Sheets client for the Family Reunion Registry."""
import json
from typing import Any, List, Optional
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from loguru import logger

SCOPES = ['https://www.googleapis.com/auth/spreadsheets']


class SheetsClient:
    """Google Sheets API client scoped to a single worksheet.

    Supports two credential modes:
    1. credentials_json: service account JSON content (cloud deploys)
    2. credentials_path: path to a service account file (local)
    """

    def __init__(self, spreadsheet_id: str, sheet_name: str = "Sheet1",
                 credentials_json: Optional[str] = None, credentials_path: Optional[str] = None):
        """Initialize Sheets client."""
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        if credentials_json:
            try:
                info = json.loads(credentials_json)
            except json.JSONDecodeError as e:
                raise RuntimeError(f"Invalid GOOGLE_SHEETS_CREDENTIALS: {e}")
            credentials = service_account.Credentials.from_service_account_info(info, scopes=SCOPES)
            logger.info("Using service account from GOOGLE_SHEETS_CREDENTIALS")
        elif credentials_path:
            credentials = service_account.Credentials.from_service_account_file(
                credentials_path,
                scopes=SCOPES
            )
            logger.info(f"Using service account from file: {credentials_path}")
        else:
            raise RuntimeError("No service account credentials configured for Google Sheets")
        self.service = build('sheets', 'v4', credentials=credentials, cache_discovery=False)
        self._sheet_id: Optional[int] = None

    @property
    def _range(self) -> str:
        return f"{self.sheet_name}!A:Z"

    def get_rows(self) -> List[List[Any]]:
        """Return every row of the worksheet, top to bottom."""
        result = self.service.spreadsheets().values().get(
            spreadsheetId=self.spreadsheet_id,
            range=self._range
        ).execute()
        return result.get('values', [])

    def append_row(self, values: List[Any]):
        """Append one row below the last non-empty row.

        Values are stored as literal text so user input is never parsed as a
        formula.
        """
        self.service.spreadsheets().values().append(
            spreadsheetId=self.spreadsheet_id,
            range=self._range,
            valueInputOption='RAW',
            insertDataOption='INSERT_ROWS',
            body={'values': [values]}
        ).execute()

    def write_header(self, header: List[str]):
        self.service.spreadsheets().values().update(
            spreadsheetId=self.spreadsheet_id,
            range=f"{self.sheet_name}!A1",
            valueInputOption='RAW',
            body={'values': [header]}
        ).execute()

    def get_sheet_id(self) -> int:
        """Numeric id of the worksheet, needed for structural edits."""
        if self._sheet_id is not None:
            return self._sheet_id

        spreadsheet = self.service.spreadsheets().get(
            spreadsheetId=self.spreadsheet_id,
            fields='sheets.properties'
        ).execute()
        for sheet in spreadsheet.get('sheets', []):
            properties = sheet.get('properties', {})
            if properties.get('title') == self.sheet_name:
                self._sheet_id = properties['sheetId']
                return self._sheet_id
        raise RuntimeError(f"Worksheet {self.sheet_name} not found in {self.spreadsheet_id}")

    def delete_row(self, row_index: int):
        """Delete a row by its zero-based index."""
        try:
            self.service.spreadsheets().batchUpdate(
                spreadsheetId=self.spreadsheet_id,
                body={
                    'requests': [{
                        'deleteDimension': {
                            'range': {
                                'sheetId': self.get_sheet_id(),
                                'dimension': 'ROWS',
                                'startIndex': row_index,
                                'endIndex': row_index + 1
                            }
                        }
                    }]
                }
            ).execute()
            logger.info(f"Deleted sheet row {row_index + 1}")
        except HttpError as e:
            logger.error(f"Error deleting sheet row {row_index + 1}: {e}")
            raise
