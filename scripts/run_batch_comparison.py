from pathlib import Path
import csv
import subprocess
import sys


# Base paths
SRC_DIR = Path(__file__).resolve().parents[1]
RAW_DIR = SRC_DIR / "data" / "raw"
PROCESSED_ROOT = SRC_DIR / "data" / "processed"

BATCH_MANIFEST = RAW_DIR / "batch_manifest.csv"
MAIN_SCRIPT = SRC_DIR / "main.py"


def build_command(row: dict, raw_dir: Path, output_dir: Path) -> list:
    """
    Command line for one manifest row.

    Manifest columns: batch_id, csv_file, json_file, and optionally
    documents and config (relative to raw_dir).
    """
    cmd = [
        sys.executable,
        str(MAIN_SCRIPT),
        "--csv",
        str(raw_dir / row["csv_file"]),
        "--json",
        str(raw_dir / row["json_file"]),
        "--output-dir",
        str(output_dir),
    ]
    if row.get("documents"):
        cmd += ["--documents", str(raw_dir / row["documents"])]
    if row.get("config"):
        cmd += ["--config", str(raw_dir / row["config"])]
    return cmd


def main(manifest: Path = BATCH_MANIFEST) -> None:
    print(f"Using manifest: {manifest}")

    if not manifest.exists():
        raise FileNotFoundError(f"Batch manifest not found: {manifest}")

    raw_dir = manifest.parent

    with manifest.open(newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)

        for row in reader:
            batch_id = row["batch_id"]
            batch_output_dir = PROCESSED_ROOT / batch_id

            print("\n====================================")
            print(f"Running batch {batch_id}")
            print("====================================")
            print(f"  CSV:  {raw_dir / row['csv_file']}")
            print(f"  JSON: {raw_dir / row['json_file']}")

            result = subprocess.run(build_command(row, raw_dir, batch_output_dir))
            if result.returncode != 0:
                raise RuntimeError(
                    f"Batch {batch_id} failed with exit code {result.returncode}"
                )

    print("\nAll batches completed successfully.")


if __name__ == "__main__":
    main(Path(sys.argv[1]) if len(sys.argv) > 1 else BATCH_MANIFEST)
