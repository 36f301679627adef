"""
JSON report generator for sigpolicy.

Generates structured JSON output for programmatic consumption.

Design Principles:
    - Consistent schema: Same structure for every call
    - Human-readable keys: Use descriptive snake_case names
    - ISO timestamps: Standard datetime format
"""

import json
from datetime import UTC, datetime
from typing import Any

from sigpolicy.architectures.base import TransactionRequest
from sigpolicy.architectures.evm import EvmTransactionRequest
from sigpolicy.schema import EvaluationReport


REPORT_VERSION = "1.0"


def generate_json_report(
    report: EvaluationReport,
    program: str,
    fuel_budget: int | None = None,
    indent: int = 2,
) -> str:
    """
    Generate a JSON report for one evaluate or custom_hash call.

    Args:
        report: The summarized outcome
        program: Display name of the program
        fuel_budget: Budget granted to the call
        indent: JSON indentation level (default: 2)

    Returns:
        JSON string with the full report
    """
    return json.dumps(build_report_dict(report, program, fuel_budget), indent=indent)


def build_report_dict(
    report: EvaluationReport,
    program: str,
    fuel_budget: int | None = None,
) -> dict[str, Any]:
    """Build the report dictionary for one call."""
    result: dict[str, Any] = {
        "report_version": REPORT_VERSION,
        "generated_at": datetime.now(UTC).isoformat(),
        "program": program,
        "outcome": report.outcome.value,
        "authorized": report.authorized,
        "fuel": {
            "budget": fuel_budget,
            "consumed": report.fuel_consumed,
        },
        "duration_ms": round(report.duration_ms, 3),
        "error": None,
    }

    if report.digest is not None:
        result["digest"] = report.digest

    if not report.authorized:
        result["error"] = {
            "error_type": report.error_type,
            "code": report.error_code,
            "message": report.message,
            "systemic": report.systemic,
        }

    return result


def transaction_to_dict(tx: TransactionRequest) -> dict[str, Any]:
    """
    Serialize a parsed transaction for JSON output.

    Every architecture gets its recipient and sender; EVM transactions also
    carry their decoded fields and sighash.
    """
    result: dict[str, Any] = {
        "architecture": tx.architecture.name,
        "to": tx.receiver(),
        "from": tx.sender(),
    }
    if not isinstance(tx, EvmTransactionRequest):
        return result

    result.update({
        "tx_type": tx.tx_type,
        "nonce": tx.nonce,
        "value": tx.value,
        "gas": tx.gas,
        "gas_price": tx.gas_price,
        "max_priority_fee_per_gas": tx.max_priority_fee_per_gas,
        "max_fee_per_gas": tx.max_fee_per_gas,
        "chain_id": tx.chain_id,
        "data": "0x" + tx.data.hex(),
        "sighash": "0x" + tx.sighash().hex(),
    })
    return result
