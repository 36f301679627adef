"""
Reporting module for sigpolicy.

Output formats:
    - Console: Rich terminal output with an outcome panel and details table
    - JSON: Structured output for programmatic consumption

Example:
    from sigpolicy.report import generate_json_report, print_evaluation_report

    report = runtime.try_evaluate(program, request)
    print_evaluation_report(report, "length_check")
    print(generate_json_report(report, "length_check"))
"""

from sigpolicy.report.console import print_evaluation_report, print_transaction
from sigpolicy.report.json import build_report_dict, generate_json_report, transaction_to_dict

__all__ = [
    "build_report_dict",
    "generate_json_report",
    "print_evaluation_report",
    "print_transaction",
    "transaction_to_dict",
]
