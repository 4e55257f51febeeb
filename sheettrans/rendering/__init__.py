"""Spreadsheet output."""

from .table_writer import write_table, table_to_bytes, translated_file_name

__all__ = ["write_table", "table_to_bytes", "translated_file_name"]
