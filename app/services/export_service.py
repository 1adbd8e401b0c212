import pandas as pd
from typing import List
from io import BytesIO

EXPENSE_COLUMNS = [
    "id", "created_at", "user", "project", "amount", "billable",
    "status", "note", "submitted_at", "approved_at", "paid_at",
]


class ExportService:
    """Tabular exports built with pandas."""

    @staticmethod
    def export_to_csv(data: List[dict], columns: List[str] = None) -> BytesIO:
        """
        Export rows to CSV.

        Args:
            data: List of dictionaries to export
            columns: Column order; also used as the header when ``data`` is empty

        Returns:
            BytesIO object containing CSV data
        """
        df = pd.DataFrame(data, columns=columns)

        # Convert datetime columns to string
        for col in df.columns:
            if pd.api.types.is_datetime64_any_dtype(df[col]):
                df[col] = df[col].dt.strftime('%Y-%m-%d %H:%M:%S')

        buffer = BytesIO()
        df.to_csv(buffer, index=False, encoding='utf-8')
        buffer.seek(0)

        return buffer

    def export_expenses(self, rows: List[dict]) -> BytesIO:
        return self.export_to_csv(rows, EXPENSE_COLUMNS)


export_service = ExportService()
