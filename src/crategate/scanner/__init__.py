"""Source and manifest scanners."""

from crategate.scanner.docs import DocCoverage, count_doc_items, measure_doc_coverage
from crategate.scanner.manifest import ManifestError, load_manifest, scan_manifest
from crategate.scanner.report import generate_report
from crategate.scanner.source import SourceScanner
from crategate.scanner.types import ScannerLimits, Severity, Violation, ViolationScanner, ViolationType

__all__ = [
    "DocCoverage",
    "ManifestError",
    "ScannerLimits",
    "Severity",
    "SourceScanner",
    "Violation",
    "ViolationScanner",
    "ViolationType",
    "count_doc_items",
    "generate_report",
    "load_manifest",
    "measure_doc_coverage",
    "scan_manifest",
]
