import tempfile
import uuid
import zipfile
from datetime import datetime, timezone
from pathlib import Path


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_today() -> str:
    """Today's UTC date as YYYY-MM-DD, the format study_date expects."""
    return utc_now().strftime("%Y-%m-%d")


def zip_dir_to_temp(dir_path: Path) -> Path:
    """Create a temporary ZIP from a directory and return its path."""
    tmp_zip = Path(tempfile.gettempdir()) / f"diagnocatio_{dir_path.name}_{uuid.uuid4().hex}.zip"
    with zipfile.ZipFile(
        tmp_zip, mode="w", compression=zipfile.ZIP_DEFLATED, allowZip64=True
    ) as zf:
        for path in sorted(dir_path.rglob("*")):
            if not path.is_file():
                continue
            rel = path.relative_to(dir_path).as_posix()
            zf.write(path, arcname=rel)
    return tmp_zip


__all__ = [
    "utc_now",
    "utc_today",
    "zip_dir_to_temp",
]
