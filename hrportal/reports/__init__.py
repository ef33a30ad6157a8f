"""Report data builders and CSV / XLSX / PDF renderers."""
