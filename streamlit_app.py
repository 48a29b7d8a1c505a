import streamlit as st
import pandas as pd
from pathlib import Path
from typing import Optional
import sys
import io
import traceback
from datetime import datetime

from main import load_config, run_comparison_with_summary
from report import ComparisonResult, paginate
from excel_export import details_frame, summary_frame


# ---------- Paths / Directories ----------
BASE_DIR = Path(__file__).resolve().parent
DATA_DIR = BASE_DIR / "data"
PROCESSED_DIR = DATA_DIR / "processed"

PROCESSED_DIR.mkdir(parents=True, exist_ok=True)

PAGE_SIZES = [10, 25, 50, 100]

# ---------- Page Config ----------
st.set_page_config(page_title="CrossCount", layout="wide")


def save_upload(uploaded_file, target: Path) -> Path:
    with open(target, "wb") as f:
        f.write(uploaded_file.getbuffer())
    return target


def run_comparison_with_stdout_capture(
    csv_file,
    json_file,
    documents_file=None,
    config_file=None,
    output_dir: Optional[Path] = None,
) -> tuple[bool, str, dict]:
    """
    Save the uploads into a fresh run folder, run the comparison and capture stdout.

    Returns:
        tuple: (success: bool, stdout: str, results: dict from run_comparison_with_summary)
    """
    if output_dir is None:
        output_dir = PROCESSED_DIR

    run_timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    run_dir = output_dir / f"run_{run_timestamp}"
    inputs_dir = run_dir / "inputs"
    inputs_dir.mkdir(parents=True, exist_ok=True)

    csv_path = save_upload(csv_file, inputs_dir / f"csv_{csv_file.name}")
    json_path = save_upload(json_file, inputs_dir / f"json_{json_file.name}")
    documents_path = None
    if documents_file is not None:
        documents_path = save_upload(documents_file, inputs_dir / f"documents_{documents_file.name}")
    config_path = None
    if config_file is not None:
        config_path = save_upload(config_file, inputs_dir / f"config_{config_file.name}")

    old_stdout = sys.stdout
    sys.stdout = captured_output = io.StringIO()

    try:
        results = run_comparison_with_summary(
            csv_path=csv_path,
            json_path=json_path,
            documents_path=documents_path,
            config_path=config_path,
            output_dir=run_dir,
        )
        success = not results.get("error")
    except Exception as e:
        success = False
        results = {
            "result": None,
            "outputs": {},
            "error": traceback.format_exc(),
        }
        print(f"Error: {e}")
    finally:
        stdout_text = captured_output.getvalue()
        sys.stdout = old_stdout

    return success, stdout_text, results


def highlight_mismatches(row: pd.Series) -> list[str]:
    color = "background-color: #fee2e2" if row["Status"] == "Mismatch" else ""
    return [color] * len(row)


def render_metrics(result: ComparisonResult) -> None:
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total Users", f"{len(result.details):,}")
    col2.metric("Matches", f"{result.match_count:,}")
    col3.metric("Mismatches", f"{result.mismatch_count:,}")
    col4.metric("CSV Total", f"{result.summary.total_csv_count:,}")
    st.caption(f"Processed in {result.processing_time_seconds:.2f}s")


def render_details(result: ComparisonResult) -> None:
    st.subheader("Comparison Results")

    if not result.details:
        st.info("No records found in either source.")
        return

    col1, col2 = st.columns([1, 3])
    with col1:
        page_size = st.selectbox("Rows per page", PAGE_SIZES, index=1, key="page_size")
    total_pages = paginate(result.details, 1, page_size)[1]
    with col2:
        page = st.number_input("Page", min_value=1, max_value=total_pages, value=1, step=1, key="page")

    rows, total_pages = paginate(result.details, int(page), page_size)
    df = details_frame(rows)
    st.dataframe(df.style.apply(highlight_mismatches, axis=1), use_container_width=True, hide_index=True)
    st.caption(f"Page {int(page)} of {total_pages}")


def render_summary(result: ComparisonResult, outputs: dict) -> None:
    st.subheader("Summary")
    mappings = outputs.get("field_mappings", {})
    df = summary_frame(
        result,
        csv_count_field=mappings.get("csv", {}).get("count_field"),
        json_count_field=mappings.get("json", {}).get("count_field"),
        category_substrings=outputs.get("category_substrings"),
    )
    st.dataframe(df, use_container_width=True, hide_index=True)

    diagnostics = result.diagnostics
    skipped = diagnostics.csv_skipped_rows + diagnostics.json_skipped_rows
    if skipped:
        st.warning(
            f"Skipped {diagnostics.csv_skipped_rows} CSV row(s) and "
            f"{diagnostics.json_skipped_rows} JSON row(s) without a usable grouping key or count."
        )
    if diagnostics.skipped_documents:
        st.warning(f"Skipped {diagnostics.skipped_documents} unreadable document(s).")
    if diagnostics.messages:
        with st.expander("Diagnostics"):
            st.code("\n".join(diagnostics.messages), language="text")


def render_comparison_tab():
    results = None
    stdout = ""

    st.title("CrossCount: CSV ↔ JSON Comparison")
    st.write(
        "Upload the CSV and JSON exports, optionally a document archive to classify, "
        "run the comparison and download the Excel report."
    )

    # ---------- Upload Section ----------
    st.header("1. Upload Files")

    col1, col2, col3 = st.columns(3)
    with col1:
        st.caption("Upload CSV export")
        csv_file = st.file_uploader(" ", type=["csv"], key="csv_upload")
    with col2:
        st.caption("Upload JSON export")
        json_file = st.file_uploader("  ", type=["json"], key="json_upload")
    with col3:
        st.caption("Upload documents (.zip or .json), optional")
        documents_file = st.file_uploader("   ", type=["zip", "json"], key="documents_upload")

    with st.expander("Advanced Options: Config"):
        config_file = st.file_uploader("Config JSON", type=["json"], key="config_upload")
        defaults = load_config() if config_file is None else None
        if defaults is not None:
            st.json(defaults, expanded=False)

    run_button = st.button("Run Comparison", type="primary", use_container_width=True)

    if run_button:
        if not csv_file or not json_file:
            st.error("Please upload BOTH a CSV export and a JSON export.")
            return

        with st.spinner("Running comparison..."):
            success, stdout, results = run_comparison_with_stdout_capture(
                csv_file=csv_file,
                json_file=json_file,
                documents_file=documents_file,
                config_file=config_file,
            )
        st.session_state["last_run"] = (success, stdout, results)
    elif "last_run" in st.session_state:
        success, stdout, results = st.session_state["last_run"]
    else:
        return

    if success and results.get("result") is not None:
        result: ComparisonResult = results["result"]
        outputs = results.get("outputs", {})

        st.success("Comparison completed.")
        render_metrics(result)
        st.divider()
        render_details(result)
        st.divider()
        render_summary(result, outputs)

        excel_path = outputs.get("excel_report")
        if excel_path and Path(excel_path).exists():
            try:
                with open(excel_path, "rb") as f:
                    st.download_button(
                        label="Download Excel",
                        data=f.read(),
                        file_name=Path(excel_path).name,
                        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
                    )
            except OSError as e:
                st.error(f"Could not read Excel report: {e}")

        st.divider()
        st.subheader("Raw Comparison Output")
        st.code(stdout, language="text")
    else:
        st.error("Comparison run failed.")
        if isinstance(results, dict) and results.get("error"):
            st.error(f"Error: {results['error']}")
        if stdout:
            st.code(stdout, language="text")


def main():
    render_comparison_tab()


if __name__ == "__main__":
    main()
