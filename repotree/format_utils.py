"""
Output format utilities for repotree CLI commands.

Provides functions to format data as CSV, TSV, YAML, JSON, and JSONL.
"""

import json
import csv
import io
import os
from typing import Dict, List, Any, Iterator, Optional
import yaml

FORMATS = ('json', 'jsonl', 'csv', 'tsv', 'yaml')


def format_output(data: Iterator[Dict[str, Any]], format: str,
                 fields: Optional[List[str]] = None) -> Iterator[str]:
    """
    Format data according to the specified format.

    Args:
        data: Iterator of dictionaries to format
        format: Output format (json, jsonl, csv, tsv, yaml)
        fields: Optional list of fields to include (for CSV/TSV)

    Yields:
        Formatted strings for output
    """
    if format == "jsonl":
        yield from format_jsonl(data)
    elif format == "json":
        yield from format_json(data)
    elif format == "csv":
        yield from format_delimited(data, fields, delimiter=',')
    elif format == "tsv":
        yield from format_delimited(data, fields, delimiter='\t')
    elif format == "yaml":
        yield from format_yaml(data)
    else:
        raise ValueError(f"Unknown format: {format}")


def format_jsonl(data: Iterator[Dict[str, Any]]) -> Iterator[str]:
    """Format data as JSON Lines (one JSON object per line)."""
    for item in data:
        yield json.dumps(item, ensure_ascii=False)


def format_json(data: Iterator[Dict[str, Any]]) -> Iterator[str]:
    """Format data as a single JSON array."""
    # Collect all data (needed for JSON array)
    all_data = list(data)
    yield json.dumps(all_data, ensure_ascii=False, indent=2)


def format_yaml(data: Iterator[Dict[str, Any]]) -> Iterator[str]:
    """Format data as YAML."""
    # Collect all data (needed for YAML document)
    all_data = list(data)
    yield yaml.dump(all_data, default_flow_style=False, allow_unicode=True, sort_keys=False)


def format_delimited(data: Iterator[Dict[str, Any]], fields: Optional[List[str]] = None,
                     delimiter: str = ',') -> Iterator[str]:
    """
    Format data as CSV or TSV.

    Args:
        data: Iterator of dictionaries
        fields: Optional list of fields to include. If None, uses every field
            seen in the data, in first-seen order.
        delimiter: Column separator
    """
    data_list = [flatten_dict(item) for item in data]
    if not data_list:
        return

    if fields is None:
        fields = []
        for item in data_list:
            fields.extend(k for k in item if k not in fields)

    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=fields, delimiter=delimiter,
                            extrasaction='ignore', lineterminator='\n')
    writer.writeheader()
    for item in data_list:
        writer.writerow(item)

    yield output.getvalue().rstrip('\n')


def flatten_dict(d: Dict[str, Any], parent_key: str = '', sep: str = '.') -> Dict[str, Any]:
    """
    Flatten a nested dictionary.

    Example:
        {'status': {'branch': 'main', 'ahead': 1}} -> {'status.branch': 'main', 'status.ahead': 1}
    """
    items: list[tuple[str, Any]] = []
    for k, v in d.items():
        new_key = f"{parent_key}{sep}{k}" if parent_key else k

        if isinstance(v, dict):
            items.extend(flatten_dict(v, new_key, sep=sep).items())
        elif isinstance(v, list):
            items.append((new_key, ', '.join(str(item) for item in v)))
        else:
            items.append((new_key, v))

    return dict(items)


def get_format_from_env(default: str = 'jsonl') -> str:
    """
    Get output format from the REPOTREE_FORMAT environment variable.

    Args:
        default: Default format if not specified

    Returns:
        Format string
    """
    format = os.environ.get('REPOTREE_FORMAT', default).lower()
    if format not in FORMATS:
        return default
    return format
