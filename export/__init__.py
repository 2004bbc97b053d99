"""Excel export of scrub reports."""

from export.excel_export import content_disposition, export_report_to_excel, export_file_name

__all__ = ["content_disposition", "export_report_to_excel", "export_file_name"]
