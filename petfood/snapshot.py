"""Snapshot file storage: load, back up, replace and export."""

import csv
import json
import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from petfood.config import SNAPSHOT_PATH
from petfood.logging_config import get_logger
from petfood.models import CatalogEntry, CatalogSnapshot

__all__ = [
    "load_snapshot",
    "save_snapshot",
    "backup_snapshot",
    "entry_to_row",
    "export_snapshot_to_csv",
]

logger = get_logger("snapshot")

PathLike = Union[str, Path]

CSV_FIELDNAMES = [
    "id",
    "source_id",
    "brand",
    "name",
    "species",
    "type",
    "targeted_conditions",
    "bag_sizes",
    "features",
    "price_estimate",
    "price_average",
    "price_range",
    "price_synthetic",
    "link",
]


def load_snapshot(path: PathLike = SNAPSHOT_PATH) -> Optional[CatalogSnapshot]:
    """Read the snapshot, or None when no snapshot has been written yet."""
    path = Path(path)
    if not path.exists():
        return None
    with open(path, "r", encoding="utf-8") as f:
        return CatalogSnapshot.from_dict(json.load(f))


def save_snapshot(snapshot: CatalogSnapshot, path: PathLike = SNAPSHOT_PATH) -> Path:
    """Replace the snapshot file with ``snapshot`` in one step.

    The document is written to a temporary sibling and moved over the old
    file, so readers never see a half-written snapshot.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}-", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(snapshot.to_dict(), f, indent=2, ensure_ascii=False)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.info(f"Snapshot saved to {path} ({snapshot.total_products} products)")
    return path


def backup_snapshot(path: PathLike = SNAPSHOT_PATH, now: Optional[datetime] = None) -> Optional[Path]:
    """Copy the current snapshot to a timestamped sibling.

    Returns the backup path, or None if there was nothing to back up.
    """
    path = Path(path)
    if not path.exists():
        logger.info(f"No existing snapshot at {path}, skipping backup")
        return None

    stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    backup_path = path.with_name(f"{path.stem}.backup-{stamp}{path.suffix}")
    counter = 0
    # Same-second backups get a numeric suffix instead of overwriting
    while backup_path.exists():
        counter += 1
        backup_path = path.with_name(f"{path.stem}.backup-{stamp}-{counter}{path.suffix}")
    shutil.copy2(path, backup_path)
    logger.info(f"Backed up snapshot to {backup_path}")
    return backup_path


def entry_to_row(entry: CatalogEntry) -> Dict[str, str]:
    """Flatten a catalog entry into a CSV-ready row."""
    return {
        "id": entry.id,
        "source_id": entry.source_id or "",
        "brand": entry.brand,
        "name": entry.name,
        "species": entry.species,
        "type": entry.type,
        "targeted_conditions": "; ".join(entry.targeted_conditions),
        "bag_sizes": "; ".join(entry.bag_sizes),
        "features": json.dumps(entry.features, ensure_ascii=False),
        "price_estimate": "" if entry.price.estimate is None else str(entry.price.estimate),
        "price_average": "" if entry.price.average is None else str(entry.price.average),
        "price_range": entry.price.range or "",
        "price_synthetic": "yes" if entry.price.synthetic else "no",
        "link": entry.link,
    }


def export_snapshot_to_csv(
    snapshot: CatalogSnapshot,
    path: PathLike,
    species: Optional[str] = None,
) -> int:
    """Write the snapshot's products to CSV, optionally one species only.

    Returns the number of rows written.
    """
    entries = [e for e in snapshot.products if species is None or e.species == species]
    if not entries:
        print("No products to export.")
        return 0

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    rows: List[Dict[str, str]] = [entry_to_row(e) for e in entries]
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDNAMES)
        writer.writeheader()
        writer.writerows(rows)

    print(f"Exported {len(rows)} products to {path}")
    return len(rows)
