from pathlib import Path
import json
import random
import zipfile

import pandas as pd

from keyword_classifier import DEFAULT_CATEGORIES

# Project paths
PROJECT_ROOT = Path(__file__).resolve().parent
DATA_RAW = PROJECT_ROOT / "data" / "raw"

FIRST_NAMES = ["Alice", "Bob", "Carl", "Dana", "Erin", "Farid", "Grace", "Hiro", "Ines", "Jonas"]
LAST_NAMES = ["Smith", "Okafor", "Novak", "Lee", "Garcia", "Muller", "Rossi", "Sato"]


def generate_synthetic_exports(
    num_users: int = 200,
    max_rows_per_user: int = 4,
    num_documents: int = 300,
    output_dir: Path = DATA_RAW,
    csv_filename: str = "export_synthetic.csv",
    json_filename: str = "export_synthetic.json",
    documents_filename: str = "documents_synthetic.zip",
    seed=None,
) -> dict:
    """
    Generate a CSV export, a JSON export and a ZIP of documents for the same users.

    - Each user has 1..max_rows_per_user CSV rows with a "Bo" count
    - The JSON side carries the same rows with a "Blop" count
    - ~8% of users get a count correction on the JSON side
    - ~3% of users exist only in the CSV, ~3% only in the JSON
    - A few CSV rows have a blank createdBy (skipped by the normalizer)
    - Document names/contents mention zero or more keyword categories
    """
    rng = random.Random(seed)
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    print("Starting synthetic export generation...")

    csv_rows = []
    json_rows = []

    for idx in range(num_users):
        created_by = f"user{10001 + idx}@example.com"
        user = f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}"

        placement = rng.random()
        in_csv = placement >= 0.03
        in_json = placement < 0.03 or placement >= 0.06

        corrected = rng.random() < 0.08

        for _ in range(rng.randint(1, max_rows_per_user)):
            count = rng.randint(0, 40)
            json_count = count
            if corrected:
                json_count = max(0, count + rng.choice([-3, -1, 1, 2, 5]))
                corrected = False  # one correction per user

            if in_csv:
                csv_rows.append({"createdBy": created_by, "user": user, "Bo": count})
            if in_json:
                json_rows.append({"createdBy": created_by, "user": user, "Blop": json_count})

    # A handful of rows without a grouping key
    for _ in range(max(1, num_users // 100)):
        csv_rows.insert(rng.randrange(len(csv_rows) + 1), {"createdBy": "", "user": "", "Bo": 1})

    csv_path = output_dir / csv_filename
    json_path = output_dir / json_filename
    documents_path = output_dir / documents_filename

    pd.DataFrame(csv_rows, columns=["createdBy", "user", "Bo"]).to_csv(csv_path, index=False)
    with json_path.open("w", encoding="utf-8") as f:
        json.dump({"records": json_rows}, f, indent=2)

    categories = list(DEFAULT_CATEGORIES.values())
    with zipfile.ZipFile(documents_path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for doc_idx in range(num_documents):
            tags = rng.sample(categories, k=rng.choice([0, 1, 1, 1, 2]))
            name = f"doc_{doc_idx:05d}_{'_'.join(tags) or 'General'}.txt"
            body_tags = rng.sample(categories, k=rng.choice([0, 0, 1]))
            body = f"Report {doc_idx}\n" + "\n".join(f"Tagged: {t.lower()}" for t in body_tags)
            zf.writestr(name, body)

    print(f"Generated CSV export:   {csv_path}  ({len(csv_rows)} rows)")
    print(f"Generated JSON export:  {json_path}  ({len(json_rows)} rows)")
    print(f"Generated documents:    {documents_path}  ({num_documents} files)")

    return {
        "csv": csv_path,
        "json": json_path,
        "documents": documents_path,
    }


if __name__ == "__main__":
    generate_synthetic_exports()
