# main.py

from dataclasses import asdict
from datetime import datetime, timezone
from itertools import chain
from pathlib import Path
from typing import Any, Dict, Optional, Union
import json
import time
import traceback

from field_maps import CSV_FIELD_CANDIDATES, JSON_FIELD_CANDIDATES, resolve_field_mapping
from keyword_classifier import DEFAULT_CATEGORIES, KeywordCategories
from loaders import DEFAULT_CSV_CHUNKSIZE, iter_csv_chunks, iter_documents, load_json_rows
from pipeline import compare_chunks
from report import ComparisonResult
from excel_export import write_excel_report


# =========================
# CONFIGURATION SECTION
# =========================

PROJECT_ROOT = Path(__file__).resolve().parent
CONFIG_DIR = PROJECT_ROOT / "config"
CONFIG_NAME = "crosscount_default.json"

# Below this mapping confidence the run still proceeds, with a warning
MIN_MAPPING_CONFIDENCE = 0.65

DEFAULT_CONFIG = {
    "csv_fields": {"key": None, "user": None, "count": None, "implicit_count": False},
    "json_fields": {"key": None, "user": None, "count": None, "implicit_count": False},
    "json_records_key": None,
    "categories": dict(DEFAULT_CATEGORIES),
    "csv_chunksize": DEFAULT_CSV_CHUNKSIZE,
    "parallel": False,
    "read_document_content": True,
}


def load_config(config_path: Union[str, Path, None] = None) -> dict:
    """
    Load a JSON config and merge it over DEFAULT_CONFIG.

    With no path, CONFIG_DIR / CONFIG_NAME is used when present; otherwise the
    defaults apply. An explicit path that does not exist is an error.
    """
    cfg = json.loads(json.dumps(DEFAULT_CONFIG))

    if config_path is None:
        path = CONFIG_DIR / CONFIG_NAME
        if not path.exists():
            print("[INFO] No config file found; using defaults.")
            return cfg
    else:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        loaded = json.load(f)

    for key, value in loaded.items():
        if key in ("csv_fields", "json_fields") and isinstance(value, dict):
            cfg[key].update(value)
        elif key == "categories" and isinstance(value, dict):
            # A configured category list replaces the defaults entirely
            cfg[key] = dict(value)
        else:
            cfg[key] = value
    return cfg


# =========================
# MAIN ORCHESTRATION
# =========================

def run_comparison(
    csv_path: Union[str, Path],
    json_path: Union[str, Path],
    documents_path: Union[str, Path, None] = None,
    config_path: Union[str, Path, None] = None,
    output_dir: Union[str, Path, None] = None,
    cfg: Optional[dict] = None,
) -> Dict[str, Any]:
    """
    Execute one CSV vs JSON comparison run.

    It will:
      - load the config (or use `cfg` as given)
      - resolve the key/user/count fields of each source
      - stream the CSV in chunks and load the JSON export
      - classify the document feed (directory, .zip or .json), if any
      - write comparison_report.xlsx + comparison_result.json when output_dir is set
      - return a dict with the ComparisonResult and the output paths
    """
    started_at = time.perf_counter()
    if cfg is None:
        cfg = load_config(config_path)

    categories = KeywordCategories.from_mapping(cfg.get("categories") or {})

    # =========================
    # Load sources
    # =========================
    csv_chunks = iter_csv_chunks(csv_path, chunksize=int(cfg.get("csv_chunksize") or DEFAULT_CSV_CHUNKSIZE))
    first_chunk = next(csv_chunks, None)
    csv_columns = [str(c) for c in first_chunk.columns] if first_chunk is not None else []
    json_rows, json_columns = load_json_rows(json_path, records_key=cfg.get("json_records_key"))

    # =========================
    # Field mapping
    # =========================
    csv_mapping, csv_confidence = resolve_field_mapping(
        csv_columns, cfg.get("csv_fields"), CSV_FIELD_CANDIDATES, source="CSV"
    )
    json_mapping, json_confidence = resolve_field_mapping(
        json_columns, cfg.get("json_fields"), JSON_FIELD_CANDIDATES, source="JSON"
    )

    for label, mapping, confidence in (
        ("CSV", csv_mapping, csv_confidence),
        ("JSON", json_mapping, json_confidence),
    ):
        print(f"\n=== Field Mapping ({label}) ===")
        print(f"  key   -> {mapping.key_field}")
        print(f"  user  -> {mapping.user_field or '(key)'}")
        print(f"  count -> {mapping.count_field or '(1 per row)'}")
        if confidence < MIN_MAPPING_CONFIDENCE:
            print(
                f"[WARN] Low confidence ({confidence:.2f}) for {label} field mapping. "
                "Manual verification recommended."
            )

    csv_row_chunks = (
        chunk.to_dict("records")
        for chunk in (chain([first_chunk], csv_chunks) if first_chunk is not None else ())
    )
    documents = iter_documents(documents_path) if documents_path else None

    result = compare_chunks(
        csv_row_chunks,
        [json_rows],
        documents,
        csv_mapping,
        json_mapping,
        categories,
        parallel=bool(cfg.get("parallel")),
        read_content=bool(cfg.get("read_document_content", True)),
        started_at=started_at,
    )

    print_run_summary(result)

    # =========================
    # Outputs
    # =========================
    outputs: Dict[str, Any] = {
        "result": result,
        "field_mappings": {
            "csv": asdict(csv_mapping),
            "json": asdict(json_mapping),
        },
        "category_substrings": {c.name: c.substring for c in categories},
        "excel_report": None,
        "json_report": None,
    }

    if output_dir is not None:
        output_dir_path = Path(output_dir)
        output_dir_path.mkdir(parents=True, exist_ok=True)

        excel_path = write_excel_report(
            result,
            output_dir_path / "comparison_report.xlsx",
            csv_count_field=csv_mapping.count_field,
            json_count_field=json_mapping.count_field,
            category_substrings=outputs["category_substrings"],
        )
        json_report_path = write_result_json(
            result,
            output_dir_path / "comparison_result.json",
            csv_path=csv_path,
            json_path=json_path,
            documents_path=documents_path,
        )
        outputs["excel_report"] = str(excel_path)
        outputs["json_report"] = str(json_report_path)

    return outputs


def write_result_json(
    result: ComparisonResult,
    out_path: Path,
    csv_path: Union[str, Path],
    json_path: Union[str, Path],
    documents_path: Union[str, Path, None] = None,
) -> Path:
    """Write the result plus the inputs it was computed from."""
    out_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "run_timestamp_utc": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "csv_file": str(csv_path),
        "json_file": str(json_path),
        "documents": str(documents_path) if documents_path else None,
        **result.to_dict(),
    }
    with out_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    print(f"Result JSON written to: {out_path}")
    return out_path


def print_run_summary(result: ComparisonResult) -> None:
    summary = result.summary
    diagnostics = result.diagnostics

    print("\n=== Comparison Summary ===")
    print(f"Keys compared:      {len(result.details):>6}")
    print(f"Matches:            {result.match_count:>6}")
    print(f"Mismatches:         {result.mismatch_count:>6}")
    print(f"Total CSV count:    {summary.total_csv_count:>6}")
    print(f"Total JSON count:   {summary.total_json_count:>6}")
    for name, count in summary.categories.items():
        print(f"Files '{name}':".ljust(20) + f"{count:>6}")
    print(f"Processed in {result.processing_time_seconds:.2f}s")

    if diagnostics.csv_skipped_rows:
        print(f"[WARN] Skipped {diagnostics.csv_skipped_rows} CSV row(s) without a usable grouping key or count.")
    if diagnostics.json_skipped_rows:
        print(f"[WARN] Skipped {diagnostics.json_skipped_rows} JSON row(s) without a usable grouping key or count.")
    if diagnostics.skipped_documents:
        print(f"[WARN] Skipped {diagnostics.skipped_documents} unreadable document(s) during classification.")


def run_comparison_with_summary(
    csv_path: Union[str, Path],
    json_path: Union[str, Path],
    documents_path: Union[str, Path, None] = None,
    config_path: Union[str, Path, None] = None,
    output_dir: Union[str, Path, None] = None,
    cfg: Optional[dict] = None,
) -> Dict[str, Any]:
    """
    Wrapper used by the Streamlit app. ALWAYS returns a dict:

    SUCCESS: {"result": ComparisonResult, "outputs": <run_comparison dict>, "error": None}
    FAILURE: {"result": None, "outputs": {}, "error": <full traceback text>}
    """
    try:
        outputs = run_comparison(
            csv_path=csv_path,
            json_path=json_path,
            documents_path=documents_path,
            config_path=config_path,
            output_dir=output_dir,
            cfg=cfg,
        )
    except Exception:
        return {
            "result": None,
            "outputs": {},
            "error": traceback.format_exc(),
        }
    return {
        "result": outputs["result"],
        "outputs": outputs,
        "error": None,
    }


def main(argv=None) -> None:
    import argparse

    parser = argparse.ArgumentParser(description="Compare a CSV export against a JSON export by grouping key.")
    parser.add_argument("--csv", required=True, help="Path to the CSV export")
    parser.add_argument("--json", required=True, help="Path to the JSON export")
    parser.add_argument("--documents", default=None, help="Directory, .zip or .json document feed to classify")
    parser.add_argument("--config", default=None, help="Path to a JSON config file")
    parser.add_argument("--output-dir", default=None, help="Where to write the Excel and JSON reports")
    parser.add_argument("--output-json", default=None, help="Write the result as JSON to this path")
    parser.add_argument(
        "--fail-on-mismatch",
        action="store_true",
        default=False,
        help="Exit with code 2 if any key mismatches",
    )
    args = parser.parse_args(argv)

    print("Running CrossCount comparison...")
    outputs = run_comparison(
        csv_path=args.csv,
        json_path=args.json,
        documents_path=args.documents,
        config_path=args.config,
        output_dir=args.output_dir,
    )
    result: ComparisonResult = outputs["result"]

    if args.output_json:
        write_result_json(
            result,
            Path(args.output_json),
            csv_path=args.csv,
            json_path=args.json,
            documents_path=args.documents,
        )

    if args.fail_on_mismatch and result.mismatch_count:
        raise SystemExit(2)


if __name__ == "__main__":
    main()
