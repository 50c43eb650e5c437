"""
Audit export (CSV/JSON) and batch CSV import.
"""

from .exporter import CSV_COLUMNS, export_csv, export_json, parse_batch_csv, result_row

__all__ = ['CSV_COLUMNS', 'export_csv', 'export_json', 'parse_batch_csv', 'result_row']
